"""Pytest configuration and shared fixtures."""

from datetime import date

import pytest

from libris import Book, LibrarySystem, Settings, User
from libris.storage import ArchiveFileStore


class FailingStore(ArchiveFileStore):
    """Store whose writes always fail, as on a full or read-only disk."""

    def save_archive(self, archive):
        raise OSError("disk full")


@pytest.fixture
def archive_path(tmp_path):
    return tmp_path / "library-archive.json"


@pytest.fixture
def system(archive_path) -> LibrarySystem:
    return LibrarySystem(Settings(archive_path=archive_path))


@pytest.fixture
def failing_system(archive_path) -> LibrarySystem:
    sys = LibrarySystem(Settings(archive_path=archive_path))
    sys.archives.store = FailingStore(archive_path)
    return sys


@pytest.fixture
def today() -> date:
    return date(2024, 3, 15)


@pytest.fixture
def make_book():
    def _make(isbn="9780132350884", title="Clean Code", copies=2, authors=None, year=2008):
        return Book(title, authors or ["Robert C. Martin"], year, isbn, copies)

    return _make


@pytest.fixture
def make_user():
    def _make(code="0612700001", first="Alice", last="Rossi", email=None):
        return User(first, last, email or f"{first.lower()}.{last.lower()}@studenti.unisa.it", code)

    return _make

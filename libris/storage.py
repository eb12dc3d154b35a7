"""Snapshot persistence for the library archive.

The whole archive is stored as one JSON document: the books, the users,
the loans and the loan-id counter.  Every save overwrites the file
atomically (write to a sibling temp file, then replace).  Loading a path
that does not exist yields a fresh, empty archive.

Loans are written with their user and book inlined.  On load they are
resolved back to the very objects held in the archive collections, so
the graph comes back with the same sharing it had when it was saved.
"""

from __future__ import annotations

import json
import os
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional, Union

import structlog

from .archive import Archive
from .domain import Book, Loan, User
from .errors import SnapshotFormatException

logger = structlog.get_logger(__name__)


def _date_to_str(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _date_from_str(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value is not None else None


def book_to_dict(book: Book) -> Dict[str, Any]:
    return {
        "title": book.title,
        "authors": list(book.authors),
        "release_year": book.release_year,
        "isbn": book.isbn,
        "total_copies": book.total_copies,
        "available_copies": book.available_copies,
    }


def book_from_dict(raw: Dict[str, Any]) -> Book:
    return Book(**raw)


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "code": user.code,
    }


def user_from_dict(raw: Dict[str, Any]) -> User:
    return User(**raw)


def loan_to_dict(loan: Loan) -> Dict[str, Any]:
    return {
        "loan_id": loan.loan_id,
        "user": user_to_dict(loan.user),
        "book": book_to_dict(loan.book),
        "loan_date": _date_to_str(loan.loan_date),
        "due_date": _date_to_str(loan.due_date),
        "return_date": _date_to_str(loan.return_date),
    }


def archive_to_dict(archive: Archive) -> Dict[str, Any]:
    return {
        "next_loan_id": archive.next_loan_id,
        "books": [book_to_dict(b) for b in archive.get_books()],
        "users": [user_to_dict(u) for u in archive.get_users()],
        "loans": [loan_to_dict(l) for l in archive.get_loans()],
    }


def archive_from_dict(raw: Dict[str, Any]) -> Archive:
    """Rebuild an archive from its snapshot form.

    Raises KeyError/TypeError/ValueError on malformed input; the file
    store turns those into SnapshotFormatException.
    """
    archive = Archive(next_loan_id=int(raw["next_loan_id"]))
    for item in raw["books"]:
        archive.add_book(book_from_dict(item))
    for item in raw["users"]:
        archive.add_user(user_from_dict(item))

    # entities removed from the archive but still referenced by closed loans
    detached_books: Dict[str, Book] = {}
    detached_users: Dict[str, User] = {}

    for item in raw["loans"]:
        user_raw = item["user"]
        user = archive.find_user_by_code(user_raw["code"])
        if user is None:
            user = detached_users.setdefault(user_raw["code"], user_from_dict(user_raw))
        book_raw = item["book"]
        book = archive.find_book_by_isbn(book_raw["isbn"])
        if book is None:
            book = detached_books.setdefault(book_raw["isbn"], book_from_dict(book_raw))
        archive.insert_loan(
            Loan(
                loan_id=int(item["loan_id"]),
                user=user,
                book=book,
                loan_date=_date_from_str(item["loan_date"]),
                due_date=_date_from_str(item["due_date"]),
                return_date=_date_from_str(item.get("return_date")),
            )
        )
    return archive


class ArchiveFileStore:
    """Reads and writes the archive snapshot at a single configured path."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def save_archive(self, archive: Archive) -> None:
        """Write the full snapshot, replacing whatever the file held."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(archive_to_dict(archive), f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.debug("archive_saved", path=str(self.path))

    def load_archive(self) -> Archive:
        """Load the snapshot, or return an empty archive if there is none yet.

        Other I/O errors propagate unchanged.
        """
        if not self.path.exists():
            logger.info("archive_missing", path=str(self.path))
            return Archive()
        with open(self.path, "r", encoding="utf-8") as f:
            try:
                raw = json.load(f)
            except json.JSONDecodeError as exc:
                raise SnapshotFormatException(str(self.path), f"not valid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise SnapshotFormatException(str(self.path), "content is not an archive")
        try:
            archive = archive_from_dict(raw)
        except (KeyError, TypeError, ValueError) as exc:
            raise SnapshotFormatException(str(self.path), f"content is not an archive: {exc!r}") from exc
        logger.info(
            "archive_loaded",
            path=str(self.path),
            books=len(archive.get_books()),
            users=len(archive.get_users()),
            loans=len(archive.get_loans()),
        )
        return archive

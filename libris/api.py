from __future__ import annotations
from datetime import date
from typing import List, Optional

from .archive import Archive
from .config import Settings
from .domain import Book, Loan, User
from .services import ArchiveService, BookService, LoanService, UserService
from .storage import ArchiveFileStore


class LibrarySystem:
    """
    Wires the snapshot store, the archive facade and the three domain services.

    Every service gets the same ArchiveService, so they all operate on the
    same live archive. Build one per process (or one per test).
    """

    def __init__(self, settings: Optional[Settings] = None, archive: Optional[Archive] = None) -> None:
        self.settings = settings or Settings()

        self.store = ArchiveFileStore(self.settings.archive_path)
        self.archives = ArchiveService(self.store, archive)

        self.books = BookService(self.archives)
        self.users = UserService(self.archives, email_domain=self.settings.email_domain)
        self.loans = LoanService(self.archives)

    @classmethod
    def from_env(cls) -> "LibrarySystem":
        return cls(Settings.from_env())

    def open(self) -> Archive:
        """Load the snapshot into the live archive."""
        return self.archives.load_archive()

    @property
    def archive(self) -> Archive:
        return self.archives.get_archive()

    # ---- reporting
    def report_inventory(self) -> List[tuple[Book, int, int]]:
        """
        Returns tuples of (Book, total_copies, available_copies), sorted by title.
        """
        return [(b, b.total_copies, b.available_copies) for b in self.books.get_books_sorted_by_title()]

    def report_overdue(self, today: Optional[date] = None) -> List[Loan]:
        return self.loans.get_overdue_loans(today)

    def report_borrowers(self) -> List[tuple[User, int]]:
        """Users with at least one open loan, with their open-loan count."""
        report: List[tuple[User, int]] = []
        for user in self.users.get_users_sorted_by_last_name():
            count = len(self.users.get_active_loans(user))
            if count:
                report.append((user, count))
        return report

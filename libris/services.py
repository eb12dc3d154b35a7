from __future__ import annotations
from datetime import date
import re
from typing import Callable, List, Optional

import structlog

from .archive import Archive
from .domain import Book, Loan, User
from .errors import (
    InvalidEmailException,
    InvalidIsbnException,
    MandatoryFieldException,
    MaxLoansReachedException,
    NoAvailableCopiesException,
    PersistenceException,
    UserHasActiveLoanException,
)
from .storage import ArchiveFileStore

logger = structlog.get_logger(__name__)

MAX_ACTIVE_LOANS = 3


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _lower(value: Optional[str]) -> str:
    return value.lower() if value else ""


def _contains(value: Optional[str], query: str) -> bool:
    return value is not None and query in value.lower()


def normalize_isbn(isbn: str) -> str:
    return isbn.replace("-", "").replace(" ", "")


def _by_due_date(loan: Loan):
    # loans without a due date go last
    return (loan.due_date is None, loan.due_date or date.min)


class ArchiveService:
    """
    Holds the one live Archive and is the only path to the snapshot store.

    All domain services share one instance, so a change committed by one
    of them is visible to the others right away.
    """

    def __init__(self, store: ArchiveFileStore, archive: Optional[Archive] = None) -> None:
        self.store = store
        self._archive = archive

    def get_archive(self) -> Archive:
        if self._archive is None:
            self._archive = Archive()
        return self._archive

    def load_archive(self) -> Archive:
        """Replace the live archive with the stored snapshot (empty if none)."""
        try:
            self._archive = self.store.load_archive()
        except OSError as exc:
            raise PersistenceException("load", str(self.store.path), str(exc)) from exc
        return self._archive

    def save_archive(self, archive: Archive) -> None:
        if archive is None:
            raise ValueError("archive must not be None")
        try:
            self.store.save_archive(archive)
        except OSError as exc:
            logger.error("archive_save_failed", path=str(self.store.path), error=str(exc))
            raise PersistenceException("save", str(self.store.path), str(exc)) from exc
        self._archive = archive

    def commit(self, apply: Callable[[], None], undo: Callable[[], None], action: str) -> None:
        """Apply a mutation and persist it; if the write fails, undo the mutation."""
        apply()
        try:
            self.save_archive(self.get_archive())
        except PersistenceException:
            undo()
            logger.warning("mutation_rolled_back", action=action)
            raise
        logger.info("mutation_committed", action=action)

    def get_all_books(self) -> List[Book]:
        return self.get_archive().get_books()

    def get_all_users(self) -> List[User]:
        return self.get_archive().get_users()

    def get_all_loans(self) -> List[Loan]:
        return self.get_archive().get_loans()


class BookService:
    def __init__(self, archives: ArchiveService) -> None:
        if archives is None:
            raise ValueError("archives must not be None")
        self.archives = archives

    @property
    def archive(self) -> Archive:
        return self.archives.get_archive()

    def add_book(self, book: Book) -> None:
        self._validate_fields(book)
        self._validate_isbn_format(book.isbn)
        self._validate_isbn_unique(book.isbn)
        self.archives.commit(
            lambda: self.archive.add_book(book),
            lambda: self.archive.remove_book(book),
            action=f"add_book:{book.isbn}",
        )

    def update_book(self, book: Book) -> None:
        """Validate and persist a book already edited in place by the caller."""
        self._validate_fields(book)
        self._validate_isbn_format(book.isbn)
        self._validate_copies_match_loans(book)
        # in-place edits belong to the caller and cannot be undone here
        self.archives.commit(lambda: None, lambda: None, action=f"update_book:{book.isbn}")

    def remove_book(self, book: Book) -> None:
        if book is None:
            raise ValueError("book must not be None")
        for loan in self.archive.find_loans_by_book(book):
            if loan.is_active:
                raise UserHasActiveLoanException("book", book.isbn)
        self.archives.commit(
            lambda: self.archive.remove_book(book),
            lambda: self.archive.add_book(book),
            action=f"remove_book:{book.isbn}",
        )

    def get_books_sorted_by_title(self) -> List[Book]:
        return sorted(self.archive.get_books(), key=lambda b: _lower(b.title))

    def get_books_sorted_by_author(self) -> List[Book]:
        return sorted(
            self.archive.get_books(),
            key=lambda b: _lower(b.authors[0]) if b.authors else "",
        )

    def get_books_sorted_by_year(self) -> List[Book]:
        return sorted(self.archive.get_books(), key=lambda b: b.release_year)

    def search_books(self, query: str) -> List[Book]:
        if query is None:
            raise ValueError("query must not be None")
        q = query.strip().lower()
        if not q:
            return self.get_books_sorted_by_title()

        def matches(b: Book) -> bool:
            return (
                _contains(b.title, q)
                or any(_contains(a, q) for a in b.authors or [])
                or _contains(b.isbn, q)
            )

        return sorted(
            (b for b in self.archive.get_books() if matches(b)),
            key=lambda b: _lower(b.title),
        )

    # validation
    def _validate_fields(self, book: Book) -> None:
        if book is None:
            raise MandatoryFieldException("book", "must not be None")
        if _is_blank(book.title):
            raise MandatoryFieldException("title", "is required", book.title)
        if not book.authors:
            raise MandatoryFieldException("authors", "at least one author is required")
        if (
            not isinstance(book.release_year, int)
            or isinstance(book.release_year, bool)
            or not 0 < book.release_year <= date.today().year
        ):
            raise MandatoryFieldException("release_year", "is not a valid year", book.release_year)
        if _is_blank(book.isbn):
            raise MandatoryFieldException("isbn", "is required", book.isbn)
        if book.total_copies is None or book.total_copies <= 0:
            raise MandatoryFieldException("total_copies", "must be greater than zero", book.total_copies)
        if book.available_copies is None or not 0 <= book.available_copies <= book.total_copies:
            raise MandatoryFieldException(
                "available_copies",
                "must be between zero and total_copies",
                book.available_copies,
            )

    def _validate_isbn_format(self, isbn: str) -> None:
        normalized = normalize_isbn(isbn)
        if not (normalized.isascii() and normalized.isdigit()):
            raise InvalidIsbnException(isbn, "only digits, spaces and hyphens are allowed")
        if len(normalized) not in (10, 13):
            raise InvalidIsbnException(isbn, "must contain 10 or 13 digits")

    def _validate_copies_match_loans(self, book: Book) -> None:
        # every copy not on the shelf must be out on an open loan
        on_loan = sum(1 for l in self.archive.find_loans_by_book(book) if l.is_active)
        if book.total_copies < on_loan:
            raise MandatoryFieldException(
                "total_copies", "cannot be less than the copies out on loan", book.total_copies
            )
        if book.total_copies - book.available_copies != on_loan:
            raise MandatoryFieldException(
                "available_copies",
                f"must equal total_copies minus the {on_loan} copies out on loan",
                book.available_copies,
            )

    def _validate_isbn_unique(self, isbn: str) -> None:
        normalized = normalize_isbn(isbn)
        for existing in self.archive.get_books():
            if normalize_isbn(existing.isbn) == normalized:
                raise InvalidIsbnException(isbn, "a book with the same ISBN is already catalogued")


class UserService:
    def __init__(self, archives: ArchiveService, email_domain: str = "unisa.it") -> None:
        if archives is None:
            raise ValueError("archives must not be None")
        self.archives = archives
        self.email_domain = email_domain
        self._email_pattern = re.compile(
            r"^[A-Za-z0-9._%+-]+@([A-Za-z0-9-]+\.)*" + re.escape(email_domain) + r"$"
        )

    @property
    def archive(self) -> Archive:
        return self.archives.get_archive()

    def add_user(self, user: User) -> None:
        self._validate_fields(user)
        self._validate_email(user.email)
        if self.archive.find_user_by_code(user.code) is not None:
            raise MandatoryFieldException("code", "a user with the same code already exists", user.code)
        self.archives.commit(
            lambda: self.archive.add_user(user),
            lambda: self.archive.remove_user(user),
            action=f"add_user:{user.code}",
        )

    def update_user(self, user: User) -> None:
        self._validate_fields(user)
        self._validate_email(user.email)
        existing = self.archive.find_user_by_code(user.code)
        if existing is not None and existing is not user:
            raise MandatoryFieldException("code", "another user already holds this code", user.code)
        self.archives.commit(lambda: None, lambda: None, action=f"update_user:{user.code}")

    def remove_user(self, user: User) -> None:
        if user is None:
            raise ValueError("user must not be None")
        if self.get_active_loans(user):
            raise UserHasActiveLoanException("user", user.code)
        self.archives.commit(
            lambda: self.archive.remove_user(user),
            lambda: self.archive.add_user(user),
            action=f"remove_user:{user.code}",
        )

    def get_active_loans(self, user: User) -> List[Loan]:
        return [l for l in self.archive.find_loans_by_user(user) if l.is_active]

    def get_users_sorted_by_last_name(self) -> List[User]:
        return sorted(self.archive.get_users(), key=lambda u: _lower(u.last_name))

    def search_users(self, query: str) -> List[User]:
        if query is None:
            raise ValueError("query must not be None")
        q = query.strip().lower()
        if not q:
            return self.get_users_sorted_by_last_name()
        found = [
            u
            for u in self.archive.get_users()
            if _contains(u.last_name, q)
            or _contains(u.first_name, q)
            or _contains(u.code, q)
            or _contains(u.email, q)
        ]
        return sorted(found, key=lambda u: _lower(u.last_name))

    # validation
    def _validate_fields(self, user: User) -> None:
        if user is None:
            raise MandatoryFieldException("user", "must not be None")
        for name in ("first_name", "last_name", "code", "email"):
            value = getattr(user, name)
            if _is_blank(value):
                raise MandatoryFieldException(name, "is required", value)

    def _validate_email(self, email: str) -> None:
        if not self._email_pattern.match(email.strip()):
            raise InvalidEmailException(email, self.email_domain)


class LoanService:
    def __init__(self, archives: ArchiveService, max_active_loans: int = MAX_ACTIVE_LOANS) -> None:
        if archives is None:
            raise ValueError("archives must not be None")
        self.archives = archives
        self.max_active_loans = max_active_loans

    @property
    def archive(self) -> Archive:
        return self.archives.get_archive()

    def register_loan(
        self,
        user: User,
        book: Book,
        due_date: date,
        today: Optional[date] = None,
    ) -> Loan:
        today = today or date.today()
        if user is None:
            raise MandatoryFieldException("user", "is required")
        if book is None:
            raise MandatoryFieldException("book", "is required")
        if due_date is None:
            raise MandatoryFieldException("due_date", "is required")

        if not book.has_available_copies():
            raise NoAvailableCopiesException(book.isbn)

        active = sum(1 for l in self.archive.find_loans_by_user(user) if l.is_active)
        if active >= self.max_active_loans:
            raise MaxLoansReachedException(user.code, self.max_active_loans)

        if due_date < today:
            raise MandatoryFieldException("due_date", "cannot be before today", due_date)

        created: List[Loan] = []

        def apply() -> None:
            created.append(self.archive.add_loan(user, book, due_date, today=today))
            book.decrement_available_copies()

        def undo() -> None:
            # the consumed loan id is not handed out again
            self.archive.remove_loan(created[0])
            book.increment_available_copies()

        self.archives.commit(apply, undo, action=f"register_loan:{user.code}:{book.isbn}")
        return created[0]

    def return_loan(self, loan: Loan, today: Optional[date] = None) -> None:
        if loan is None:
            raise MandatoryFieldException("loan", "is required")
        if not loan.is_active:
            raise MandatoryFieldException("loan", "is already closed", loan.loan_id)

        def apply() -> None:
            loan.book.increment_available_copies()
            loan.mark_returned(today)

        def undo() -> None:
            loan.return_date = None
            loan.book.decrement_available_copies()

        self.archives.commit(apply, undo, action=f"return_loan:{loan.loan_id}")

    def is_late(self, loan: Optional[Loan], today: Optional[date] = None) -> bool:
        if loan is None:
            return False
        return loan.is_overdue(today)

    def get_active_loans(self) -> List[Loan]:
        return sorted(self.archive.get_active_loans(), key=_by_due_date)

    def get_loans_sorted_by_due_date(self) -> List[Loan]:
        return sorted(self.archive.get_loans(), key=_by_due_date)

    def get_overdue_loans(self, today: Optional[date] = None) -> List[Loan]:
        today = today or date.today()
        return [l for l in self.get_active_loans() if l.is_overdue(today)]

    def get_returned_loans(self) -> List[Loan]:
        return self.archive.get_returned_loans()

    def get_loans_by_user(self, user: User) -> List[Loan]:
        return sorted(self.archive.find_loans_by_user(user), key=_by_due_date)

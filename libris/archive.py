from __future__ import annotations
from datetime import date
from typing import Dict, List, Optional

from .domain import Book, Loan, User


class Archive:
    """
    Aggregate root owning the catalog, the user registry and the loan ledger.

    This is a mechanical store: it never checks business rules. Every
    getter returns a fresh list so callers cannot change archive state by
    holding on to a returned collection.
    """

    def __init__(self, next_loan_id: int = 1) -> None:
        self._books: Dict[str, Book] = {}
        self._users: Dict[str, User] = {}
        self._loans: Dict[int, Loan] = {}
        self._next_loan_id = next_loan_id

    @property
    def next_loan_id(self) -> int:
        return self._next_loan_id

    # books
    def add_book(self, book: Book) -> None:
        self._books[book.isbn] = book

    def remove_book(self, book: Book) -> None:
        self._books.pop(book.isbn, None)

    def find_book_by_isbn(self, isbn: Optional[str]) -> Optional[Book]:
        if isbn is None:
            return None
        return self._books.get(isbn)

    def get_books(self) -> List[Book]:
        return list(self._books.values())

    # users
    def add_user(self, user: User) -> None:
        self._users[user.code] = user

    def remove_user(self, user: User) -> None:
        self._users.pop(user.code, None)

    def find_user_by_code(self, code: Optional[str]) -> Optional[User]:
        if code is None:
            return None
        return self._users.get(code)

    def get_users(self) -> List[User]:
        return list(self._users.values())

    # loans
    def generate_loan_id(self) -> int:
        loan_id = self._next_loan_id
        self._next_loan_id += 1
        return loan_id

    def add_loan(
        self, user: User, book: Book, due_date: date, today: Optional[date] = None
    ) -> Loan:
        loan = Loan(
            loan_id=self.generate_loan_id(),
            user=user,
            book=book,
            loan_date=today or date.today(),
            due_date=due_date,
        )
        self._loans[loan.loan_id] = loan
        return loan

    def insert_loan(self, loan: Loan) -> None:
        """Store an already built loan, keeping the id counter ahead of it."""
        self._loans[loan.loan_id] = loan
        if loan.loan_id >= self._next_loan_id:
            self._next_loan_id = loan.loan_id + 1

    def remove_loan(self, loan: Loan) -> None:
        self._loans.pop(loan.loan_id, None)

    def find_loan_by_id(self, loan_id: int) -> Optional[Loan]:
        return self._loans.get(loan_id)

    def find_loans_by_user(self, user: User) -> List[Loan]:
        return [l for l in self._loans.values() if l.user == user]

    def find_loans_by_book(self, book: Book) -> List[Loan]:
        return [l for l in self._loans.values() if l.book == book]

    def get_loans(self) -> List[Loan]:
        return list(self._loans.values())

    def get_active_loans(self) -> List[Loan]:
        return [l for l in self._loans.values() if l.is_active]

    def get_returned_loans(self) -> List[Loan]:
        return [l for l in self._loans.values() if not l.is_active]

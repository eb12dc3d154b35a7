from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from typing import Any, List, Optional


class _Identified:
    """Equality, hashing and immutability keyed on a single field."""

    _key: str = ""

    @property
    def key(self) -> Any:
        return self.__dict__.get(self._key)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == self._key and name in self.__dict__:
            raise AttributeError(f"{type(self).__name__}.{name} is immutable")
        super().__setattr__(name, value)

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if type(other) is not type(self):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.key))


@dataclass(eq=False)
class Book(_Identified):
    title: str
    authors: List[str]
    release_year: int
    isbn: str
    total_copies: int
    available_copies: Optional[int] = None

    _key = "isbn"

    def __post_init__(self) -> None:
        # a new book has no loans yet
        if self.available_copies is None:
            self.available_copies = self.total_copies

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "authors" and value is not None:
            value = list(value)
        super().__setattr__(name, value)

    def has_available_copies(self) -> bool:
        return self.available_copies > 0

    def decrement_available_copies(self) -> None:
        if self.available_copies <= 0:
            raise ValueError(f"book {self.isbn} has no available copies")
        self.available_copies -= 1

    def increment_available_copies(self) -> None:
        if self.available_copies >= self.total_copies:
            raise ValueError(f"book {self.isbn} already has all copies available")
        self.available_copies += 1


@dataclass(eq=False)
class User(_Identified):
    first_name: str
    last_name: str
    email: str
    code: str

    _key = "code"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(eq=False)
class Loan(_Identified):
    loan_id: int
    user: User
    book: Book
    loan_date: date
    due_date: Optional[date]
    return_date: Optional[date] = None

    _key = "loan_id"

    @property
    def is_active(self) -> bool:
        return self.return_date is None

    @property
    def status(self) -> bool:
        """True while the loan is open. Derived from return_date, never stored."""
        return self.is_active

    def is_overdue(self, today: Optional[date] = None) -> bool:
        today = today or date.today()
        return self.is_active and self.due_date is not None and self.due_date < today

    def mark_returned(self, when: Optional[date] = None) -> None:
        self.return_date = when or date.today()

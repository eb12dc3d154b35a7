from __future__ import annotations
from datetime import date, timedelta
from typing import Optional

import structlog

from .api import LibrarySystem
from .domain import Book, User

logger = structlog.get_logger(__name__)


def seed_demo_data(system: LibrarySystem, today: Optional[date] = None) -> None:
    today = today or date.today()

    # users
    alice = User("Alice", "Rossi", "a.rossi@studenti.unisa.it", "0612700001")
    bruno = User("Bruno", "Verdi", "b.verdi@unisa.it", "0612700002")
    carla = User("Carla", "Bianchi", "c.bianchi@studenti.unisa.it", "0612700003")
    for user in (alice, bruno, carla):
        system.users.add_user(user)

    # books
    dune = Book("Dune", ["Frank Herbert"], 1965, "978-0-441-17271-9", 2)
    clean_code = Book("Clean Code", ["Robert C. Martin"], 2008, "978-0-13-235088-4", 3)
    sicp = Book(
        "Structure and Interpretation of Computer Programs",
        ["Harold Abelson", "Gerald Jay Sussman"],
        1996,
        "0262510871",
        1,
    )
    for book in (dune, clean_code, sicp):
        system.books.add_book(book)

    # loans
    system.loans.register_loan(alice, dune, today + timedelta(days=14), today=today)
    system.loans.register_loan(alice, clean_code, today + timedelta(days=7), today=today)
    system.loans.register_loan(bruno, sicp, today + timedelta(days=30), today=today)

    logger.info(
        "demo_data_seeded",
        users=[u.code for u in system.users.get_users_sorted_by_last_name()],
        books=[b.title for b in system.books.get_books_sorted_by_title()],
        loans=[l.loan_id for l in system.loans.get_active_loans()],
    )

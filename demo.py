from __future__ import annotations

import tempfile
from datetime import date, timedelta
from pathlib import Path

from libris import (
    LibrarySystem,
    MaxLoansReachedException,
    NoAvailableCopiesException,
    Settings,
    UserHasActiveLoanException,
    seed_demo_data,
)
from libris.log import configure_logging


def demo_flow(archive_path: Path) -> None:
    today = date.today()
    sys = LibrarySystem(Settings(archive_path=archive_path))
    sys.open()
    seed_demo_data(sys, today=today)

    # Search
    print("\n[demo] search 'clean':", [b.title for b in sys.books.search_books("clean")])

    # Report inventory
    print("\n[demo] inventory:")
    for book, total, available in sys.report_inventory():
        print(f"  - {book.title}: total={total}, available={available}")

    # SICP has a single copy, already out
    carla = sys.archive.find_user_by_code("0612700003")
    sicp = sys.archive.find_book_by_isbn("0262510871")
    try:
        sys.loans.register_loan(carla, sicp, today + timedelta(days=7))
    except NoAvailableCopiesException as exc:
        print("\n[demo] Carla tries SICP:", exc.message)

    # Alice hits the loan cap with her third book
    alice = sys.archive.find_user_by_code("0612700001")
    dune = sys.archive.find_book_by_isbn("978-0-441-17271-9")
    clean_code = sys.archive.find_book_by_isbn("978-0-13-235088-4")
    sys.loans.register_loan(alice, dune, today + timedelta(days=10))
    try:
        sys.loans.register_loan(alice, clean_code, today + timedelta(days=10))
    except MaxLoansReachedException as exc:
        print("[demo] Alice tries a fourth loan:", exc.message)

    # A book with open loans cannot leave the catalog
    try:
        sys.books.remove_book(dune)
    except UserHasActiveLoanException as exc:
        print("[demo] removing Dune:", exc.message)

    for loan in sys.loans.get_loans_by_user(alice):
        if loan.is_active:
            sys.loans.return_loan(loan)
    print("[demo] Alice returned everything; open loans:", len(sys.users.get_active_loans(alice)))

    # Reload from disk and compare
    reloaded = LibrarySystem(Settings(archive_path=archive_path))
    reloaded.open()
    print(
        "\n[demo] reloaded snapshot:",
        f"books={len(reloaded.archive.get_books())}",
        f"users={len(reloaded.archive.get_users())}",
        f"loans={len(reloaded.archive.get_loans())}",
    )
    print("[demo] overdue loans:", [l.loan_id for l in reloaded.report_overdue()])


if __name__ == "__main__":
    configure_logging("INFO")
    with tempfile.TemporaryDirectory() as tmp:
        demo_flow(Path(tmp) / "library-archive.json")

"""Unit tests for LoanService.

Covers the loan state machine, the guard ordering of register_loan and
the copy-count bookkeeping.
Run with: pytest tests/test_loan_service.py -v
"""

from datetime import date, timedelta

import pytest

from libris import (
    Book,
    MandatoryFieldException,
    MaxLoansReachedException,
    NoAvailableCopiesException,
    PersistenceException,
)


@pytest.fixture
def stocked(system, make_user, make_book):
    """A system with one user and four single-copy books."""
    user = make_user()
    system.users.add_user(user)
    isbns = ["9780441172719", "9780132350884", "0262510871", "9780201633610"]
    books = [make_book(isbn=isbn, title=f"Book {i}", copies=1) for i, isbn in enumerate(isbns)]
    for book in books:
        system.books.add_book(book)
    return system, user, books


class TestRegisterLoan:
    def test_register_creates_active_loan(self, stocked, today):
        system, user, books = stocked
        loan = system.loans.register_loan(user, books[0], today + timedelta(days=7), today=today)
        assert loan.is_active
        assert loan.loan_date == today
        assert loan.user is user and loan.book is books[0]
        assert system.archive.find_loan_by_id(loan.loan_id) is loan

    @pytest.mark.parametrize("missing", ["user", "book", "due_date"])
    def test_missing_argument_raises(self, stocked, today, missing):
        system, user, books = stocked
        args = dict(user=user, book=books[0], due_date=today)
        args[missing] = None
        with pytest.raises(MandatoryFieldException):
            system.loans.register_loan(today=today, **args)

    def test_last_copy_then_no_copies(self, stocked, make_user, today):
        system, user, books = stocked
        book = books[0]
        system.loans.register_loan(user, book, today + timedelta(days=7), today=today)
        assert book.available_copies == 0

        other = make_user(code="2", first="Bruno", last="Verdi")
        system.users.add_user(other)
        with pytest.raises(NoAvailableCopiesException):
            system.loans.register_loan(other, book, today + timedelta(days=7), today=today)

    def test_fourth_loan_hits_cap(self, stocked, today):
        system, user, books = stocked
        for book in books[:3]:
            system.loans.register_loan(user, book, today + timedelta(days=7), today=today)
        with pytest.raises(MaxLoansReachedException):
            system.loans.register_loan(user, books[3], today + timedelta(days=7), today=today)
        assert books[3].available_copies == 1

    def test_returned_loans_do_not_count_against_cap(self, stocked, today):
        system, user, books = stocked
        loans = [
            system.loans.register_loan(user, b, today + timedelta(days=7), today=today) for b in books[:3]
        ]
        system.loans.return_loan(loans[0], today=today)
        system.loans.register_loan(user, books[3], today + timedelta(days=7), today=today)

    def test_availability_checked_before_cap(self, stocked, today):
        system, user, books = stocked
        for book in books[:3]:
            system.loans.register_loan(user, book, today + timedelta(days=7), today=today)
        with pytest.raises(NoAvailableCopiesException):
            system.loans.register_loan(user, books[0], today + timedelta(days=7), today=today)

    def test_cap_checked_before_due_date(self, stocked, today):
        system, user, books = stocked
        for book in books[:3]:
            system.loans.register_loan(user, book, today + timedelta(days=7), today=today)
        with pytest.raises(MaxLoansReachedException):
            system.loans.register_loan(user, books[3], today - timedelta(days=1), today=today)

    def test_past_due_date_raises(self, stocked, today):
        system, user, books = stocked
        with pytest.raises(MandatoryFieldException):
            system.loans.register_loan(user, books[0], today - timedelta(days=1), today=today)
        assert books[0].available_copies == 1

    def test_due_today_is_accepted(self, stocked, today):
        system, user, books = stocked
        system.loans.register_loan(user, books[0], today, today=today)

    def test_register_persists_snapshot(self, stocked, today):
        system, user, books = stocked
        loan = system.loans.register_loan(user, books[0], today + timedelta(days=7), today=today)
        reloaded = system.store.load_archive()
        assert reloaded.find_loan_by_id(loan.loan_id).is_active
        assert reloaded.find_book_by_isbn(books[0].isbn).available_copies == 0

    def test_failed_write_restores_copies(self, failing_system, make_user, make_book, today):
        user, book = make_user(), make_book(copies=1)
        failing_system.archive.add_user(user)
        failing_system.archive.add_book(book)
        with pytest.raises(PersistenceException):
            failing_system.loans.register_loan(user, book, today + timedelta(days=7), today=today)
        assert book.available_copies == 1
        assert failing_system.archive.get_loans() == []
        # the burned id is never handed out again
        assert failing_system.archive.next_loan_id == 2


class TestReturnLoan:
    def test_return_closes_loan_and_frees_copy(self, stocked, today):
        system, user, books = stocked
        loan = system.loans.register_loan(user, books[0], today + timedelta(days=7), today=today)
        system.loans.return_loan(loan, today=today + timedelta(days=2))
        assert not loan.is_active
        assert loan.return_date == today + timedelta(days=2)
        assert books[0].available_copies == 1

    def test_return_none_raises(self, system):
        with pytest.raises(MandatoryFieldException):
            system.loans.return_loan(None)

    def test_second_return_raises_without_double_increment(self, stocked, today):
        system, user, books = stocked
        loan = system.loans.register_loan(user, books[0], today + timedelta(days=7), today=today)
        system.loans.return_loan(loan, today=today)
        with pytest.raises(MandatoryFieldException):
            system.loans.return_loan(loan, today=today)
        assert books[0].available_copies == books[0].total_copies

    def test_failed_write_reopens_loan(self, failing_system, make_user, make_book, today):
        user, book = make_user(), make_book(copies=1)
        loan = failing_system.archive.add_loan(user, book, today + timedelta(days=7), today=today)
        book.decrement_available_copies()
        with pytest.raises(PersistenceException):
            failing_system.loans.return_loan(loan, today=today)
        assert loan.is_active
        assert book.available_copies == 0

    def test_copies_stay_in_bounds_over_many_cycles(self, stocked, make_user, today):
        system, user, _ = stocked
        book = Book("Shared", ["Someone"], 2001, "9781234567897", 2)
        system.books.add_book(book)
        other = make_user(code="2", first="Bruno", last="Verdi")
        system.users.add_user(other)
        for _ in range(3):
            first = system.loans.register_loan(user, book, today + timedelta(days=1), today=today)
            second = system.loans.register_loan(other, book, today + timedelta(days=1), today=today)
            assert book.available_copies == 0
            system.loans.return_loan(first, today=today)
            system.loans.return_loan(second, today=today)
            assert book.available_copies == book.total_copies


class TestLateLoans:
    def test_is_late_turns_true_after_due_date(self, stocked, today):
        system, user, books = stocked
        loan = system.loans.register_loan(user, books[0], today + timedelta(days=1), today=today)
        assert not system.loans.is_late(loan, today=today)
        assert not system.loans.is_late(loan, today=today + timedelta(days=1))
        assert system.loans.is_late(loan, today=today + timedelta(days=2))

    def test_is_late_false_for_none_and_closed(self, stocked, today):
        system, user, books = stocked
        assert not system.loans.is_late(None)
        loan = system.loans.register_loan(user, books[0], today, today=today)
        system.loans.return_loan(loan, today=today)
        assert not system.loans.is_late(loan, today=today + timedelta(days=30))

    def test_is_late_false_without_due_date(self, stocked, today):
        system, user, books = stocked
        loan = system.loans.register_loan(user, books[0], today, today=today)
        loan.due_date = None
        assert not system.loans.is_late(loan, today=today + timedelta(days=30))

    def test_overdue_loans(self, stocked, today):
        system, user, books = stocked
        soon = system.loans.register_loan(user, books[0], today + timedelta(days=1), today=today)
        system.loans.register_loan(user, books[1], today + timedelta(days=10), today=today)
        assert system.loans.get_overdue_loans(today=today + timedelta(days=5)) == [soon]


class TestLoanQueries:
    def test_active_loans_sorted_by_due_date(self, stocked, today):
        system, user, books = stocked
        late = system.loans.register_loan(user, books[0], today + timedelta(days=9), today=today)
        early = system.loans.register_loan(user, books[1], today + timedelta(days=2), today=today)
        closed = system.loans.register_loan(user, books[2], today + timedelta(days=1), today=today)
        system.loans.return_loan(closed, today=today)
        assert system.loans.get_active_loans() == [early, late]

    def test_loans_sorted_by_due_date_put_missing_last(self, stocked, today):
        system, user, books = stocked
        undated = system.loans.register_loan(user, books[0], today + timedelta(days=1), today=today)
        undated.due_date = None
        dated = system.loans.register_loan(user, books[1], today + timedelta(days=5), today=today)
        assert system.loans.get_loans_sorted_by_due_date() == [dated, undated]

    def test_returned_and_per_user_views(self, stocked, today):
        system, user, books = stocked
        first = system.loans.register_loan(user, books[0], today + timedelta(days=1), today=today)
        second = system.loans.register_loan(user, books[1], today + timedelta(days=2), today=today)
        system.loans.return_loan(first, today=today)
        assert system.loans.get_returned_loans() == [first]
        assert system.loans.get_loans_by_user(user) == [first, second]

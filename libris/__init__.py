"""
Libris: catalog and loan tracking for a small institutional library.

Exports key modules for convenient imports.
"""

from .domain import (
    Book,
    User,
    Loan,
)

from .errors import (
    LibraryServiceException,
    MandatoryFieldException,
    InvalidIsbnException,
    InvalidEmailException,
    NoAvailableCopiesException,
    MaxLoansReachedException,
    UserHasActiveLoanException,
    PersistenceException,
    SnapshotFormatException,
)

from .archive import Archive
from .storage import ArchiveFileStore
from .config import Settings

from .services import (
    ArchiveService,
    BookService,
    UserService,
    LoanService,
)

from .api import LibrarySystem
from .seed import seed_demo_data

__all__ = [
    # domain
    "Book",
    "User",
    "Loan",
    # errors
    "LibraryServiceException",
    "MandatoryFieldException",
    "InvalidIsbnException",
    "InvalidEmailException",
    "NoAvailableCopiesException",
    "MaxLoansReachedException",
    "UserHasActiveLoanException",
    "PersistenceException",
    "SnapshotFormatException",
    # store
    "Archive",
    "ArchiveFileStore",
    "Settings",
    # services
    "ArchiveService",
    "BookService",
    "UserService",
    "LoanService",
    # api
    "LibrarySystem",
    # seed
    "seed_demo_data",
]

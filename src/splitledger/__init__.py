"""splitledger - Shared expense ledger: splits, debts, balances and settlement."""

__version__ = "0.1.0"

from .balances import aggregate_balances, summarize_balances
from .config import Settings, load_settings
from .db import Database
from .exceptions import (
    AlreadySettledError,
    AuthorizationError,
    LedgerError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .groups import GroupServiceClient, StaticGroupDirectory
from .models import Expense, NetBalance, Obligation, Split
from .obligations import generate_obligations
from .service import LedgerService
from .splits import compute_splits, validate_split_sum

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "LedgerError",
    "ValidationError",
    "NotFoundError",
    "AuthorizationError",
    "AlreadySettledError",
    "StorageError",
    "GroupServiceClient",
    "StaticGroupDirectory",
    "Expense",
    "NetBalance",
    "Obligation",
    "Split",
    "compute_splits",
    "validate_split_sum",
    "generate_obligations",
    "aggregate_balances",
    "summarize_balances",
    "LedgerService",
]

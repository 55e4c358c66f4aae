"""Atomic points ledger: awards, penalties, redemptions and their audit log."""

from .models import (
    AdHoc,
    AwardReason,
    CompletionStatus,
    LedgerResult,
    TaskLinked,
    TransactionType,
)
from .services import PointsLedger

__all__ = [
    "AdHoc",
    "AwardReason",
    "CompletionStatus",
    "LedgerResult",
    "PointsLedger",
    "TaskLinked",
    "TransactionType",
]

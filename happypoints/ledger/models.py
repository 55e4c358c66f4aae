"""Data models for the points ledger."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from happypoints.core.types import FirestoreDocument


class TransactionType(str, Enum):
    """Kind of point movement recorded in the transaction log."""

    EARN = "earn"
    REDEEM = "redeem"
    PENALTY = "penalty"


class CompletionStatus(str, Enum):
    """Review state of a task completion."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PointsTransaction(FirestoreDocument, total=False):
    """An immutable entry of the transaction log."""

    userId: str
    groupId: Optional[str]
    type: str
    amount: int
    description: str


class TaskCompletion(FirestoreDocument, total=False):
    """A member's claim of having done a task."""

    taskId: str
    groupId: str
    userId: str
    userName: str
    completedAt: Any
    pointsAwarded: int
    status: str
    approvedBy: str
    approvedByName: str
    approvedAt: Any
    rejectionReason: str


class GroupPenalty(FirestoreDocument, total=False):
    """Audit record of an applied penalty."""

    groupId: str
    memberId: str
    penaltyTypeId: str
    title: str
    amount: int
    reason: Optional[str]
    appliedBy: str
    appliedByName: str
    transactionId: str


@dataclass(frozen=True)
class TaskLinked:
    """An award given for a specific task, outside the approval workflow."""

    task_id: str
    task_title: str


@dataclass(frozen=True)
class AdHoc:
    """An award given at the admin's discretion."""


AwardReason = Union[TaskLinked, AdHoc]


@dataclass
class LedgerResult:
    """Identifiers of the documents written by a ledger operation."""

    transaction_id: str
    user_id: str
    amount: int
    group_id: Optional[str] = None
    completion_id: Optional[str] = None
    penalty_id: Optional[str] = None
    redemption_id: Optional[str] = None
    membership_updated: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Return the result as a JSON-serialisable dictionary."""
        return {
            "transactionId": self.transaction_id,
            "userId": self.user_id,
            "groupId": self.group_id,
            "amount": self.amount,
            "completionId": self.completion_id,
            "penaltyId": self.penalty_id,
            "redemptionId": self.redemption_id,
            "membershipUpdated": self.membership_updated,
        }

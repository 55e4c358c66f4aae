"""Service layer for the points ledger.

Every operation that moves points runs as one Firestore transaction: the
user's counters, the group membership mirror and the transaction log entry
are written together or not at all. Point counters are only ever changed
with ``firestore.Increment`` so concurrent awards to the same user add up
regardless of commit order.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore

from happypoints.constants import (
    GROUP_MEMBERS,
    GROUP_PENALTIES,
    GROUP_PENALTY_TYPES,
    GROUP_PRIZE_REDEMPTIONS,
    GROUP_PRIZES,
    GROUP_TASKS,
    NO_REASON_PROVIDED,
    TASK_COMPLETIONS,
    TRANSACTIONS,
    TRANSACTIONS_LIMIT,
    UNKNOWN_TASK_TITLE,
    USERS,
)
from happypoints.core.documents import membership_id, snapshots_to_list
from happypoints.core.transactions import run_transaction
from happypoints.errors import (
    AlreadyProcessedError,
    InsufficientPointsError,
    InvalidAmountError,
    NotFoundError,
    ValidationError,
)

from .models import (
    AdHoc,
    AwardReason,
    CompletionStatus,
    LedgerResult,
    PointsTransaction,
    TaskLinked,
    TransactionType,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction


logger = logging.getLogger(__name__)


def _validate_amount(points: Any) -> int:
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise InvalidAmountError("Points must be greater than 0.")
    return points


def _award_description(reason: AwardReason, admin_name: str) -> str:
    if isinstance(reason, TaskLinked):
        return f"Task completed: {reason.task_title} (awarded by {admin_name})"
    if isinstance(reason, AdHoc):
        return f"Points awarded by admin: {admin_name}"
    raise TypeError(f"Unknown award reason: {reason!r}")


class PointsLedger:
    """Moves points between users, group memberships and the transaction log."""

    @staticmethod
    def _commit(operation: str, transactional_fn: Callable[..., Any], db: Client) -> Any:
        """Run a transactional function, wrapping storage failures."""
        return run_transaction(operation, transactional_fn, db)

    @staticmethod
    def _read_user(
        db: Client, transaction: Transaction, user_id: str
    ) -> DocumentSnapshot:
        snapshot = db.collection(USERS).document(user_id).get(transaction=transaction)
        if not snapshot.exists:
            raise NotFoundError("User not found.")
        return snapshot

    @staticmethod
    def _read_member(
        db: Client, transaction: Transaction, group_id: str, user_id: str
    ) -> DocumentSnapshot:
        member_ref = db.collection(GROUP_MEMBERS).document(
            membership_id(group_id, user_id)
        )
        return member_ref.get(transaction=transaction)

    @staticmethod
    def _queue_points_delta(  # noqa: PLR0913
        db: Client,
        transaction: Transaction,
        user_snapshot: DocumentSnapshot,
        member_snapshot: DocumentSnapshot | None,
        user_deltas: dict[str, int],
        member_deltas: dict[str, int],
        record: PointsTransaction,
    ) -> tuple[str, bool]:
        """Queue the counter increments and the log entry on the transaction.

        Must be called after every read of the surrounding transaction.
        Returns the id of the new transaction record and whether the group
        membership mirror was written.
        """
        user_updates: dict[str, Any] = {
            field: firestore.Increment(delta) for field, delta in user_deltas.items()
        }
        user_updates["updatedAt"] = firestore.SERVER_TIMESTAMP
        transaction.update(user_snapshot.reference, user_updates)

        membership_updated = False
        if member_snapshot is not None and member_snapshot.exists:
            member_updates: dict[str, Any] = {
                field: firestore.Increment(delta)
                for field, delta in member_deltas.items()
            }
            member_updates["updatedAt"] = firestore.SERVER_TIMESTAMP
            transaction.update(member_snapshot.reference, member_updates)
            membership_updated = True
        else:
            logger.warning(
                f"No membership for user {record['userId']} in group "
                f"{record.get('groupId')}; group points not mirrored."
            )

        record_ref = db.collection(TRANSACTIONS).document()
        transaction.set(record_ref, {**record, "createdAt": firestore.SERVER_TIMESTAMP})
        return record_ref.id, membership_updated

    @staticmethod
    def award_for_task_completion(
        db: Client, completion_id: str, approver_id: str, approver_name: str
    ) -> LedgerResult:
        """Approve a pending task completion and award its points."""
        completion_ref = db.collection(TASK_COMPLETIONS).document(completion_id)

        @firestore.transactional
        def approve_in_transaction(transaction: Transaction) -> LedgerResult:
            snapshot = completion_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("Task completion not found.")
            completion = snapshot.to_dict() or {}
            if completion.get("status") != CompletionStatus.PENDING.value:
                raise AlreadyProcessedError()

            amount = _validate_amount(completion.get("pointsAwarded"))
            user_id = completion["userId"]
            group_id = completion["groupId"]

            task_snapshot = (
                db.collection(GROUP_TASKS)
                .document(completion["taskId"])
                .get(transaction=transaction)
            )
            task_title = UNKNOWN_TASK_TITLE
            if task_snapshot.exists:
                task_title = (task_snapshot.to_dict() or {}).get(
                    "title", UNKNOWN_TASK_TITLE
                )

            user_snapshot = PointsLedger._read_user(db, transaction, user_id)
            member_snapshot = PointsLedger._read_member(
                db, transaction, group_id, user_id
            )

            transaction.update(
                completion_ref,
                {
                    "status": CompletionStatus.APPROVED.value,
                    "approvedBy": approver_id,
                    "approvedByName": approver_name,
                    "approvedAt": firestore.SERVER_TIMESTAMP,
                },
            )
            transaction_id, mirrored = PointsLedger._queue_points_delta(
                db,
                transaction,
                user_snapshot,
                member_snapshot,
                {"currentPoints": amount, "totalEarned": amount},
                {"pointsEarned": amount},
                {
                    "userId": user_id,
                    "groupId": group_id,
                    "type": TransactionType.EARN.value,
                    "amount": amount,
                    "description": f"Task completed: {task_title}",
                },
            )
            return LedgerResult(
                transaction_id=transaction_id,
                user_id=user_id,
                group_id=group_id,
                amount=amount,
                completion_id=completion_id,
                membership_updated=mirrored,
            )

        result = PointsLedger._commit(
            "award_for_task_completion", approve_in_transaction, db
        )
        logger.info(
            f"Approved completion {completion_id}: {result.amount} points to "
            f"user {result.user_id} in group {result.group_id}"
        )
        return result

    @staticmethod
    def reject_task_completion(
        db: Client,
        completion_id: str,
        approver_id: str,
        approver_name: str,
        reason: str | None = None,
    ) -> None:
        """Reject a pending task completion; balances are left untouched."""
        completion_ref = db.collection(TASK_COMPLETIONS).document(completion_id)

        @firestore.transactional
        def reject_in_transaction(transaction: Transaction) -> None:
            snapshot = completion_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("Task completion not found.")
            completion = snapshot.to_dict() or {}
            if completion.get("status") != CompletionStatus.PENDING.value:
                raise AlreadyProcessedError()

            transaction.update(
                completion_ref,
                {
                    "status": CompletionStatus.REJECTED.value,
                    "approvedBy": approver_id,
                    "approvedByName": approver_name,
                    "approvedAt": firestore.SERVER_TIMESTAMP,
                    "rejectionReason": (reason or "").strip() or NO_REASON_PROVIDED,
                },
            )

        PointsLedger._commit("reject_task_completion", reject_in_transaction, db)
        logger.info(f"Rejected completion {completion_id} by {approver_id}")

    @staticmethod
    def award_direct(  # noqa: PLR0913
        db: Client,
        group_id: str,
        member_id: str,
        admin_id: str,
        admin_name: str,
        points: int,
        reason: AwardReason = AdHoc(),
    ) -> LedgerResult:
        """Award points to a group member without a prior task completion.

        A ``TaskLinked`` reason also writes an already-approved task
        completion as an audit trail.
        """
        amount = _validate_amount(points)
        description = _award_description(reason, admin_name)

        @firestore.transactional
        def award_in_transaction(transaction: Transaction) -> LedgerResult:
            user_snapshot = PointsLedger._read_user(db, transaction, member_id)
            member_snapshot = PointsLedger._read_member(
                db, transaction, group_id, member_id
            )

            transaction_id, mirrored = PointsLedger._queue_points_delta(
                db,
                transaction,
                user_snapshot,
                member_snapshot,
                {"currentPoints": amount, "totalEarned": amount},
                {"pointsEarned": amount},
                {
                    "userId": member_id,
                    "groupId": group_id,
                    "type": TransactionType.EARN.value,
                    "amount": amount,
                    "description": description,
                },
            )

            completion_id = None
            if isinstance(reason, TaskLinked):
                member = member_snapshot.to_dict() if member_snapshot.exists else {}
                completion_ref = db.collection(TASK_COMPLETIONS).document()
                transaction.set(
                    completion_ref,
                    {
                        "taskId": reason.task_id,
                        "groupId": group_id,
                        "userId": member_id,
                        "userName": (member or {}).get("userName", ""),
                        "completedAt": firestore.SERVER_TIMESTAMP,
                        "pointsAwarded": amount,
                        "status": CompletionStatus.APPROVED.value,
                        "approvedBy": admin_id,
                        "approvedByName": admin_name,
                        "approvedAt": firestore.SERVER_TIMESTAMP,
                    },
                )
                completion_id = completion_ref.id

            return LedgerResult(
                transaction_id=transaction_id,
                user_id=member_id,
                group_id=group_id,
                amount=amount,
                completion_id=completion_id,
                membership_updated=mirrored,
            )

        result = PointsLedger._commit("award_direct", award_in_transaction, db)
        logger.info(
            f"Admin {admin_id} awarded {amount} points to user {member_id} "
            f"in group {group_id}"
        )
        return result

    @staticmethod
    def apply_penalty(  # noqa: PLR0913
        db: Client,
        group_id: str,
        member_id: str,
        penalty_type_id: str,
        admin_id: str,
        admin_name: str,
        reason: str | None = None,
    ) -> LedgerResult:
        """Deduct a penalty type's amount from a member.

        The amount counts towards ``totalRedeemed`` so that
        ``currentPoints == totalEarned - totalRedeemed`` keeps holding, and
        towards ``totalPenalized`` so penalties stay distinguishable from
        prize redemptions.
        """
        if admin_id == member_id:
            raise ValidationError("You cannot apply a penalty to yourself.")
        penalty_type_ref = db.collection(GROUP_PENALTY_TYPES).document(penalty_type_id)
        reason = (reason or "").strip() or None

        @firestore.transactional
        def penalize_in_transaction(transaction: Transaction) -> LedgerResult:
            type_snapshot = penalty_type_ref.get(transaction=transaction)
            penalty_type = type_snapshot.to_dict() if type_snapshot.exists else None
            if (
                not penalty_type
                or not penalty_type.get("isActive")
                or penalty_type.get("groupId") != group_id
            ):
                raise NotFoundError("Penalty type not found.")

            amount = _validate_amount(penalty_type.get("amount"))
            title = penalty_type.get("title", "")
            user_snapshot = PointsLedger._read_user(db, transaction, member_id)
            member_snapshot = PointsLedger._read_member(
                db, transaction, group_id, member_id
            )

            description = f"Penalty: {title}"
            if reason:
                description += f" ({reason})"
            transaction_id, mirrored = PointsLedger._queue_points_delta(
                db,
                transaction,
                user_snapshot,
                member_snapshot,
                {
                    "currentPoints": -amount,
                    "totalRedeemed": amount,
                    "totalPenalized": amount,
                },
                {"pointsRedeemed": amount, "pointsPenalized": amount},
                {
                    "userId": member_id,
                    "groupId": group_id,
                    "type": TransactionType.PENALTY.value,
                    "amount": amount,
                    "description": description,
                },
            )

            penalty_ref = db.collection(GROUP_PENALTIES).document()
            transaction.set(
                penalty_ref,
                {
                    "groupId": group_id,
                    "memberId": member_id,
                    "penaltyTypeId": penalty_type_id,
                    "title": title,
                    "amount": amount,
                    "reason": reason,
                    "appliedBy": admin_id,
                    "appliedByName": admin_name,
                    "transactionId": transaction_id,
                    "createdAt": firestore.SERVER_TIMESTAMP,
                },
            )
            return LedgerResult(
                transaction_id=transaction_id,
                user_id=member_id,
                group_id=group_id,
                amount=amount,
                penalty_id=penalty_ref.id,
                membership_updated=mirrored,
            )

        result = PointsLedger._commit("apply_penalty", penalize_in_transaction, db)
        logger.info(
            f"Admin {admin_id} applied penalty {penalty_type_id} "
            f"({result.amount} points) to user {member_id} in group {group_id}"
        )
        return result

    @staticmethod
    def redeem_prize(
        db: Client, group_id: str, user_id: str, prize_id: str
    ) -> LedgerResult:
        """Spend a member's group points on a prize."""
        prize_ref = db.collection(GROUP_PRIZES).document(prize_id)

        @firestore.transactional
        def redeem_in_transaction(transaction: Transaction) -> LedgerResult:
            prize_snapshot = prize_ref.get(transaction=transaction)
            prize = prize_snapshot.to_dict() if prize_snapshot.exists else None
            if (
                not prize
                or not prize.get("isActive")
                or prize.get("groupId") != group_id
            ):
                raise NotFoundError("Prize not found.")
            cost = _validate_amount(prize.get("pointsCost"))

            user_snapshot = PointsLedger._read_user(db, transaction, user_id)
            member_snapshot = PointsLedger._read_member(
                db, transaction, group_id, user_id
            )
            if not member_snapshot.exists:
                raise NotFoundError("User is not a member of this group.")
            member = member_snapshot.to_dict() or {}
            available = member.get("pointsEarned", 0) - member.get("pointsRedeemed", 0)
            if available < cost:
                raise InsufficientPointsError(
                    f"Insufficient points. You have {available} points "
                    f"but need {cost} points."
                )

            title = prize.get("title", "")
            transaction_id, _ = PointsLedger._queue_points_delta(
                db,
                transaction,
                user_snapshot,
                member_snapshot,
                {"currentPoints": -cost, "totalRedeemed": cost},
                {"pointsRedeemed": cost},
                {
                    "userId": user_id,
                    "groupId": group_id,
                    "type": TransactionType.REDEEM.value,
                    "amount": cost,
                    "description": f"Redeemed prize: {title}",
                },
            )

            redemption_ref = db.collection(GROUP_PRIZE_REDEMPTIONS).document()
            transaction.set(
                redemption_ref,
                {
                    "groupId": group_id,
                    "userId": user_id,
                    "userName": member.get("userName", ""),
                    "prizeId": prize_id,
                    "prizeTitle": title,
                    "pointsCost": cost,
                    "transactionId": transaction_id,
                    "createdAt": firestore.SERVER_TIMESTAMP,
                },
            )
            return LedgerResult(
                transaction_id=transaction_id,
                user_id=user_id,
                group_id=group_id,
                amount=cost,
                redemption_id=redemption_ref.id,
            )

        result = PointsLedger._commit("redeem_prize", redeem_in_transaction, db)
        logger.info(
            f"User {user_id} redeemed prize {prize_id} for {result.amount} points "
            f"in group {group_id}"
        )
        return result

    @staticmethod
    def get_user_transactions(
        db: Client, user_id: str, limit: int = TRANSACTIONS_LIMIT
    ) -> list[PointsTransaction]:
        """Fetch a user's transaction records, newest first."""
        query = (
            db.collection(TRANSACTIONS)
            .where(filter=firestore.FieldFilter("userId", "==", user_id))
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
        )
        if limit:
            query = query.limit(limit)
        return cast("list[PointsTransaction]", snapshots_to_list(query.stream()))

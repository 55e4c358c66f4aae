"""Service layer for joining groups: join requests and invitations.

A user never becomes a member directly. Joining by code files a join request
that a group admin approves or rejects; an admin invitation is accepted by
the invitee with its code. Both paths add the member in a transaction that
re-reads the group, so the member limit holds under concurrent joins.
"""

from __future__ import annotations

import datetime
import logging
import secrets
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore

from happypoints.constants import (
    DEFAULT_MAX_MEMBERS,
    GROUP_INVITATIONS,
    GROUP_JOIN_REQUESTS,
    GROUP_MEMBERS,
    GROUPS,
    INVITATION_EXPIRY_DAYS,
    NO_REASON_PROVIDED,
    USERS,
)
from happypoints.core.documents import membership_id, snapshot_to_dict, snapshots_to_list
from happypoints.core.transactions import run_transaction
from happypoints.errors import (
    AlreadyProcessedError,
    DuplicateResourceError,
    NotFoundError,
    ValidationError,
)

from .models import GroupRole, InvitationStatus, JoinRequestStatus
from .services import GroupService

if TYPE_CHECKING:
    from collections.abc import Iterable

    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

    from .models import GroupInvitation, GroupJoinRequest


logger = logging.getLogger(__name__)


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _normalize_emails(emails: Iterable[str]) -> list[str]:
    normalized: list[str] = []
    for email in emails:
        email = (email or "").strip().lower()
        if not email:
            continue
        if "@" not in email or email.startswith("@") or email.endswith("@"):
            raise ValidationError(f"Invalid email address: {email}")
        if email not in normalized:
            normalized.append(email)
    if not normalized:
        raise ValidationError("At least one email address is required.")
    return normalized


class MembershipService:
    """Service class for join requests and group invitations."""

    @staticmethod
    def _read_join_target(
        db: Client, transaction: Transaction, group_id: str, user_id: str
    ) -> DocumentSnapshot:
        """Read the group a user is about to join and check they can join it.

        Must run before any write of the surrounding transaction.
        """
        group_snapshot = (
            db.collection(GROUPS).document(group_id).get(transaction=transaction)
        )
        if not group_snapshot.exists:
            raise NotFoundError("Group not found.")
        member_snapshot = (
            db.collection(GROUP_MEMBERS)
            .document(membership_id(group_id, user_id))
            .get(transaction=transaction)
        )
        if member_snapshot.exists:
            raise DuplicateResourceError("User is already a member of this group.")
        group = group_snapshot.to_dict() or {}
        if group.get("memberCount", 0) >= group.get("maxMembers", DEFAULT_MAX_MEMBERS):
            raise ValidationError("Group is full.")
        return group_snapshot

    @staticmethod
    def _queue_new_member(  # noqa: PLR0913
        db: Client,
        transaction: Transaction,
        group_snapshot: DocumentSnapshot,
        user_id: str,
        user_name: str,
        user_email: str,
    ) -> None:
        GroupService._queue_membership(
            db,
            transaction,
            group_snapshot.id,
            user_id,
            user_name,
            user_email,
            GroupRole.MEMBER,
        )
        transaction.update(
            group_snapshot.reference,
            {
                "memberCount": firestore.Increment(1),
                "updatedAt": firestore.SERVER_TIMESTAMP,
            },
        )

    # Join requests

    @staticmethod
    def join_group_by_code(
        db: Client, code: str, user_id: str, user_name: str, user_email: str
    ) -> tuple[str, str]:
        """File a request to join the group with the given code.

        Returns the group id and the id of the new pending join request.
        """
        docs = (
            db.collection(GROUPS)
            .where(filter=firestore.FieldFilter("code", "==", code.strip().upper()))
            .limit(1)
            .get()
        )
        if not docs:
            raise NotFoundError("Invalid group code.")
        group_id = cast("DocumentSnapshot", docs[0]).id
        pending_query = (
            db.collection(GROUP_JOIN_REQUESTS)
            .where(filter=firestore.FieldFilter("groupId", "==", group_id))
            .where(filter=firestore.FieldFilter("userId", "==", user_id))
            .where(
                filter=firestore.FieldFilter(
                    "status", "==", JoinRequestStatus.PENDING.value
                )
            )
            .limit(1)
        )

        @firestore.transactional
        def request_in_transaction(transaction: Transaction) -> str:
            group_snapshot = MembershipService._read_join_target(
                db, transaction, group_id, user_id
            )
            if list(pending_query.stream(transaction=transaction)):
                raise DuplicateResourceError(
                    "You already have a pending join request for this group."
                )
            request_ref = db.collection(GROUP_JOIN_REQUESTS).document()
            transaction.set(
                request_ref,
                {
                    "groupId": group_id,
                    "groupName": (group_snapshot.to_dict() or {}).get("name", ""),
                    "userId": user_id,
                    "userName": user_name,
                    "userEmail": user_email,
                    "status": JoinRequestStatus.PENDING.value,
                    "requestedAt": firestore.SERVER_TIMESTAMP,
                },
            )
            return request_ref.id

        request_id = run_transaction("join_group_by_code", request_in_transaction, db)
        logger.info(f"User {user_id} requested to join group {group_id}")
        return group_id, request_id

    @staticmethod
    def get_join_requests(
        db: Client,
        group_id: str,
        status: JoinRequestStatus | None = JoinRequestStatus.PENDING,
    ) -> list[GroupJoinRequest]:
        """Fetch a group's join requests, newest first."""
        query = db.collection(GROUP_JOIN_REQUESTS).where(
            filter=firestore.FieldFilter("groupId", "==", group_id)
        )
        if status is not None:
            query = query.where(filter=firestore.FieldFilter("status", "==", status.value))
        query = query.order_by("requestedAt", direction=firestore.Query.DESCENDING)
        return cast("list[GroupJoinRequest]", snapshots_to_list(query.stream()))

    @staticmethod
    def _read_pending_request(
        transaction: Transaction, request_ref: Any, group_id: str
    ) -> dict[str, Any]:
        snapshot = request_ref.get(transaction=transaction)
        request = snapshot.to_dict() if snapshot.exists else None
        if not request or request.get("groupId") != group_id:
            raise NotFoundError("Join request not found.")
        if request.get("status") != JoinRequestStatus.PENDING.value:
            raise AlreadyProcessedError("Join request has already been processed.")
        return request

    @staticmethod
    def approve_join_request(
        db: Client, group_id: str, request_id: str, admin_id: str, admin_name: str
    ) -> str:
        """Approve a pending join request and add the requester as a member.

        Returns the new member's user id.
        """
        request_ref = db.collection(GROUP_JOIN_REQUESTS).document(request_id)

        @firestore.transactional
        def approve_in_transaction(transaction: Transaction) -> str:
            request = MembershipService._read_pending_request(
                transaction, request_ref, group_id
            )
            user_id = request["userId"]
            group_snapshot = MembershipService._read_join_target(
                db, transaction, group_id, user_id
            )
            MembershipService._queue_new_member(
                db,
                transaction,
                group_snapshot,
                user_id,
                request.get("userName", ""),
                request.get("userEmail", ""),
            )
            transaction.update(
                request_ref,
                {
                    "status": JoinRequestStatus.APPROVED.value,
                    "processedAt": firestore.SERVER_TIMESTAMP,
                    "processedBy": admin_id,
                    "processedByName": admin_name,
                },
            )
            return user_id

        user_id = run_transaction("approve_join_request", approve_in_transaction, db)
        logger.info(f"Admin {admin_id} approved user {user_id} into group {group_id}")
        return user_id

    @staticmethod
    def reject_join_request(  # noqa: PLR0913
        db: Client,
        group_id: str,
        request_id: str,
        admin_id: str,
        admin_name: str,
        reason: str | None = None,
    ) -> None:
        """Reject a pending join request."""
        request_ref = db.collection(GROUP_JOIN_REQUESTS).document(request_id)

        @firestore.transactional
        def reject_in_transaction(transaction: Transaction) -> None:
            MembershipService._read_pending_request(transaction, request_ref, group_id)
            transaction.update(
                request_ref,
                {
                    "status": JoinRequestStatus.REJECTED.value,
                    "processedAt": firestore.SERVER_TIMESTAMP,
                    "processedBy": admin_id,
                    "processedByName": admin_name,
                    "rejectionReason": (reason or "").strip() or NO_REASON_PROVIDED,
                },
            )

        run_transaction("reject_join_request", reject_in_transaction, db)
        logger.info(f"Admin {admin_id} rejected join request {request_id}")

    # Invitations

    @staticmethod
    def _has_account(db: Client, email: str) -> bool:
        query = (
            db.collection(USERS)
            .where(filter=firestore.FieldFilter("email", "==", email))
            .limit(1)
        )
        return bool(list(query.stream()))

    @staticmethod
    def _invitation_data(  # noqa: PLR0913
        db: Client,
        group_id: str,
        group_name: str,
        admin_id: str,
        admin_name: str,
        email: str,
    ) -> dict[str, Any]:
        return {
            "groupId": group_id,
            "groupName": group_name,
            "adminId": admin_id,
            "adminName": admin_name,
            "inviteeEmail": email,
            "status": InvitationStatus.PENDING.value,
            "expiresAt": _now() + datetime.timedelta(days=INVITATION_EXPIRY_DAYS),
            "hasAccount": MembershipService._has_account(db, email),
            "createdAt": firestore.SERVER_TIMESTAMP,
        }

    @staticmethod
    def send_invitations(
        db: Client,
        group_id: str,
        admin_id: str,
        admin_name: str,
        emails: Iterable[str],
    ) -> list[str]:
        """Create a pending invitation for each distinct email address.

        Returns the invitation codes in the order of the addresses.
        """
        addresses = _normalize_emails(emails)
        group = GroupService.get_group(db, group_id)
        if not group:
            raise NotFoundError("Group not found.")

        batch = db.batch()
        codes = []
        for email in addresses:
            code = secrets.token_urlsafe(32)
            batch.set(
                db.collection(GROUP_INVITATIONS).document(code),
                MembershipService._invitation_data(
                    db, group_id, group.get("name", ""), admin_id, admin_name, email
                ),
            )
            codes.append(code)
        batch.commit()
        logger.info(f"Admin {admin_id} invited {len(codes)} people to group {group_id}")
        return codes

    @staticmethod
    def get_invitation(db: Client, code: str) -> GroupInvitation | None:
        """Fetch an invitation by its code."""
        ref = db.collection(GROUP_INVITATIONS).document(code)
        return cast("GroupInvitation | None", snapshot_to_dict(ref.get()))

    @staticmethod
    def get_invitations(db: Client, group_id: str) -> list[GroupInvitation]:
        """Fetch every invitation of a group, newest first."""
        query = (
            db.collection(GROUP_INVITATIONS)
            .where(filter=firestore.FieldFilter("groupId", "==", group_id))
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
        )
        return cast("list[GroupInvitation]", snapshots_to_list(query.stream()))

    @staticmethod
    def count_pending_invitations(db: Client, group_id: str) -> int:
        """Count the invitations of a group still waiting for an answer."""
        query = (
            db.collection(GROUP_INVITATIONS)
            .where(filter=firestore.FieldFilter("groupId", "==", group_id))
            .where(
                filter=firestore.FieldFilter(
                    "status", "==", InvitationStatus.PENDING.value
                )
            )
        )
        return len(list(query.stream()))

    @staticmethod
    def accept_invitation(
        db: Client, code: str, user_id: str, user_name: str, user_email: str
    ) -> str:
        """Join the invitation's group. Returns the group id."""
        invitation_ref = db.collection(GROUP_INVITATIONS).document(code)

        @firestore.transactional
        def accept_in_transaction(transaction: Transaction) -> str:
            snapshot = invitation_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("Invalid invitation.")
            invitation = snapshot.to_dict() or {}
            if invitation.get("status") != InvitationStatus.PENDING.value:
                raise AlreadyProcessedError("This invitation has already been used.")
            expires_at = invitation.get("expiresAt")
            if expires_at is not None and expires_at <= _now():
                raise ValidationError("This invitation has expired.")

            group_snapshot = MembershipService._read_join_target(
                db, transaction, invitation["groupId"], user_id
            )
            MembershipService._queue_new_member(
                db, transaction, group_snapshot, user_id, user_name, user_email
            )
            transaction.update(
                invitation_ref,
                {
                    "status": InvitationStatus.ACCEPTED.value,
                    "inviteeUserId": user_id,
                    "acceptedAt": firestore.SERVER_TIMESTAMP,
                },
            )
            return group_snapshot.id

        group_id = run_transaction("accept_invitation", accept_in_transaction, db)
        logger.info(f"User {user_id} accepted an invitation to group {group_id}")
        return group_id

    @staticmethod
    def _pending_invitation(db: Client, group_id: str, code: str) -> GroupInvitation:
        invitation = MembershipService.get_invitation(db, code)
        if not invitation or invitation.get("groupId") != group_id:
            raise NotFoundError("Invitation not found.")
        if invitation.get("status") != InvitationStatus.PENDING.value:
            raise AlreadyProcessedError("This invitation has already been used.")
        return invitation

    @staticmethod
    def cancel_invitation(db: Client, group_id: str, code: str) -> None:
        """Withdraw a pending invitation so its code can no longer be used."""
        MembershipService._pending_invitation(db, group_id, code)
        db.collection(GROUP_INVITATIONS).document(code).update(
            {
                "status": InvitationStatus.EXPIRED.value,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }
        )

    @staticmethod
    def resend_invitation(
        db: Client, group_id: str, code: str, admin_id: str, admin_name: str
    ) -> str:
        """Replace a pending invitation with a fresh code and expiry date."""
        invitation = MembershipService._pending_invitation(db, group_id, code)
        new_code = secrets.token_urlsafe(32)
        batch = db.batch()
        batch.update(
            db.collection(GROUP_INVITATIONS).document(code),
            {
                "status": InvitationStatus.EXPIRED.value,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            },
        )
        batch.set(
            db.collection(GROUP_INVITATIONS).document(new_code),
            MembershipService._invitation_data(
                db,
                group_id,
                invitation.get("groupName", ""),
                admin_id,
                admin_name,
                invitation["inviteeEmail"],
            ),
        )
        batch.commit()
        return new_code

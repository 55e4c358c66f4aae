"""Service layer for groups, memberships, penalty types and prizes."""

from __future__ import annotations

import logging
import secrets
import string
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore

from happypoints.constants import (
    DEFAULT_LIMIT,
    DEFAULT_MAX_MEMBERS,
    GROUP_CODE_LENGTH,
    GROUP_MEMBERS,
    GROUP_PENALTIES,
    GROUP_PENALTY_TYPES,
    GROUP_PRIZES,
    GROUPS,
    MAX_MEMBERS,
)
from happypoints.core.documents import membership_id, snapshot_to_dict, snapshots_to_list
from happypoints.errors import (
    DuplicateResourceError,
    ForbiddenError,
    InvalidAmountError,
    NotFoundError,
    ValidationError,
)

from .models import GroupRole

if TYPE_CHECKING:
    from google.cloud.firestore_v1.batch import WriteBatch
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

    from happypoints.ledger.models import GroupPenalty

    from .models import Group, GroupMember, GroupPenaltyType, GroupPrize


logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_ATTEMPTS = 5


def _positive(value: Any, message: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidAmountError(message)
    return value


class GroupService:
    """Service class for group-related operations."""

    @staticmethod
    def _generate_code(db: Client) -> str:
        """Generate a join code not used by any other group."""
        for _ in range(CODE_ATTEMPTS):
            code = "".join(
                secrets.choice(CODE_ALPHABET) for _ in range(GROUP_CODE_LENGTH)
            )
            existing = (
                db.collection(GROUPS)
                .where(filter=firestore.FieldFilter("code", "==", code))
                .limit(1)
                .get()
            )
            if not existing:
                return code
        raise DuplicateResourceError("Could not generate a unique group code.")

    @staticmethod
    def _queue_membership(  # noqa: PLR0913
        db: Client,
        batch: WriteBatch | Transaction,
        group_id: str,
        user_id: str,
        user_name: str,
        user_email: str,
        role: GroupRole,
    ) -> None:
        member_ref = db.collection(GROUP_MEMBERS).document(
            membership_id(group_id, user_id)
        )
        batch.set(
            member_ref,
            {
                "groupId": group_id,
                "userId": user_id,
                "userName": user_name,
                "userEmail": user_email,
                "role": role.value,
                "pointsEarned": 0,
                "pointsRedeemed": 0,
                "pointsPenalized": 0,
                "joinedAt": firestore.SERVER_TIMESTAMP,
            },
        )

    @staticmethod
    def create_group(  # noqa: PLR0913
        db: Client,
        admin_id: str,
        admin_name: str,
        admin_email: str,
        name: str,
        description: str = "",
        max_members: int = DEFAULT_MAX_MEMBERS,
        is_private: bool = False,
    ) -> str:
        """Create a group; its creator becomes the first admin member."""
        if not name or not name.strip():
            raise ValidationError("Group name is required.")
        if not 2 <= max_members <= MAX_MEMBERS:  # noqa: PLR2004
            raise ValidationError(f"Max members must be between 2 and {MAX_MEMBERS}.")

        group_ref = db.collection(GROUPS).document()
        batch = db.batch()
        batch.set(
            group_ref,
            {
                "name": name.strip(),
                "description": (description or "").strip(),
                "code": GroupService._generate_code(db),
                "adminId": admin_id,
                "adminName": admin_name,
                "memberCount": 1,
                "maxMembers": max_members,
                "isPrivate": is_private,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            },
        )
        GroupService._queue_membership(
            db, batch, group_ref.id, admin_id, admin_name, admin_email, GroupRole.ADMIN
        )
        batch.commit()
        logger.info(f"User {admin_id} created group {group_ref.id}")
        return group_ref.id

    @staticmethod
    def get_group(db: Client, group_id: str) -> Group | None:
        """Fetch a group by id."""
        snapshot = db.collection(GROUPS).document(group_id).get()
        return cast("Group | None", snapshot_to_dict(snapshot))

    @staticmethod
    def for_viewer(group: Group, user_id: str) -> Group:
        """Hide a private group's join code from everyone but its admin."""
        if group.get("isPrivate") and group.get("adminId") != user_id:
            group = cast("Group", {k: v for k, v in group.items() if k != "code"})
        return group

    @staticmethod
    def get_member(db: Client, group_id: str, user_id: str) -> GroupMember | None:
        """Fetch a user's membership in a group."""
        member_ref = db.collection(GROUP_MEMBERS).document(
            membership_id(group_id, user_id)
        )
        return cast("GroupMember | None", snapshot_to_dict(member_ref.get()))

    @staticmethod
    def get_members(db: Client, group_id: str) -> list[GroupMember]:
        """Fetch all members of a group."""
        query = db.collection(GROUP_MEMBERS).where(
            filter=firestore.FieldFilter("groupId", "==", group_id)
        )
        return cast("list[GroupMember]", snapshots_to_list(query.stream()))

    @staticmethod
    def get_user_groups(db: Client, user_id: str) -> list[Group]:
        """Fetch every group a user belongs to."""
        memberships = (
            db.collection(GROUP_MEMBERS)
            .where(filter=firestore.FieldFilter("userId", "==", user_id))
            .stream()
        )
        group_refs = [
            db.collection(GROUPS).document(m.to_dict()["groupId"]) for m in memberships
        ]
        if not group_refs:
            return []
        return cast("list[Group]", snapshots_to_list(db.get_all(group_refs)))

    @staticmethod
    def require_admin(db: Client, group_id: str, user_id: str) -> GroupMember:
        """Return the caller's membership, raising unless they are a group admin."""
        member = GroupService.get_member(db, group_id, user_id)
        if not member or member.get("role") != GroupRole.ADMIN.value:
            raise ForbiddenError()
        return member

    # Penalty types

    @staticmethod
    def create_penalty_type(  # noqa: PLR0913
        db: Client,
        group_id: str,
        title: str,
        description: str,
        amount: int,
        created_by: str,
        created_by_name: str,
    ) -> str:
        """Create a penalty type admins can apply to members."""
        _positive(amount, "Penalty amount must be positive.")
        ref = db.collection(GROUP_PENALTY_TYPES).document()
        ref.set(
            {
                "groupId": group_id,
                "title": title.strip(),
                "description": (description or "").strip(),
                "amount": amount,
                "isActive": True,
                "createdBy": created_by,
                "createdByName": created_by_name,
                "createdAt": firestore.SERVER_TIMESTAMP,
            }
        )
        return ref.id

    @staticmethod
    def get_penalty_types(
        db: Client, group_id: str, active_only: bool = False
    ) -> list[GroupPenaltyType]:
        """Fetch a group's penalty types, newest first."""
        query = db.collection(GROUP_PENALTY_TYPES).where(
            filter=firestore.FieldFilter("groupId", "==", group_id)
        )
        if active_only:
            query = query.where(filter=firestore.FieldFilter("isActive", "==", True))
        query = query.order_by("createdAt", direction=firestore.Query.DESCENDING)
        return cast("list[GroupPenaltyType]", snapshots_to_list(query.stream()))

    @staticmethod
    def get_penalty_type(db: Client, penalty_type_id: str) -> GroupPenaltyType | None:
        """Fetch a penalty type by id."""
        ref = db.collection(GROUP_PENALTY_TYPES).document(penalty_type_id)
        return cast("GroupPenaltyType | None", snapshot_to_dict(ref.get()))

    @staticmethod
    def update_penalty_type(
        db: Client, penalty_type_id: str, updates: dict[str, Any]
    ) -> None:
        """Update the title, description, amount or active flag of a penalty type."""
        allowed = {"title", "description", "amount", "isActive"}
        data = {k: v for k, v in updates.items() if k in allowed and v is not None}
        if "amount" in data:
            _positive(data["amount"], "Penalty amount must be positive.")
        for field in ("title", "description"):
            if field in data:
                data[field] = data[field].strip()
        if not data:
            return
        data["updatedAt"] = firestore.SERVER_TIMESTAMP
        db.collection(GROUP_PENALTY_TYPES).document(penalty_type_id).update(data)

    @staticmethod
    def deactivate_penalty_type(db: Client, penalty_type_id: str) -> None:
        """Stop a penalty type from being applied without deleting its history."""
        GroupService.update_penalty_type(db, penalty_type_id, {"isActive": False})

    @staticmethod
    def delete_penalty_type(db: Client, penalty_type_id: str) -> None:
        """Delete a penalty type."""
        db.collection(GROUP_PENALTY_TYPES).document(penalty_type_id).delete()

    @staticmethod
    def get_group_penalties(
        db: Client, group_id: str, limit: int = DEFAULT_LIMIT
    ) -> list[GroupPenalty]:
        """Fetch the most recent penalties applied in a group."""
        query = (
            db.collection(GROUP_PENALTIES)
            .where(filter=firestore.FieldFilter("groupId", "==", group_id))
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        return cast("list[GroupPenalty]", snapshots_to_list(query.stream()))

    # Prizes

    @staticmethod
    def create_prize(  # noqa: PLR0913
        db: Client,
        group_id: str,
        title: str,
        description: str,
        points_cost: int,
        created_by: str,
        created_by_name: str,
    ) -> str:
        """Create a prize members can redeem with their group points."""
        _positive(points_cost, "Prize cost must be positive.")
        ref = db.collection(GROUP_PRIZES).document()
        ref.set(
            {
                "groupId": group_id,
                "title": title.strip(),
                "description": (description or "").strip(),
                "pointsCost": points_cost,
                "isActive": True,
                "createdBy": created_by,
                "createdByName": created_by_name,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }
        )
        return ref.id

    @staticmethod
    def get_prizes(
        db: Client, group_id: str, active_only: bool = False
    ) -> list[GroupPrize]:
        """Fetch a group's prizes, newest first."""
        query = db.collection(GROUP_PRIZES).where(
            filter=firestore.FieldFilter("groupId", "==", group_id)
        )
        if active_only:
            query = query.where(filter=firestore.FieldFilter("isActive", "==", True))
        query = query.order_by("createdAt", direction=firestore.Query.DESCENDING)
        return cast("list[GroupPrize]", snapshots_to_list(query.stream()))

    @staticmethod
    def get_prize(db: Client, prize_id: str) -> GroupPrize | None:
        """Fetch a prize by id."""
        snapshot = db.collection(GROUP_PRIZES).document(prize_id).get()
        return cast("GroupPrize | None", snapshot_to_dict(snapshot))

    @staticmethod
    def update_prize(db: Client, prize_id: str, updates: dict[str, Any]) -> None:
        """Update a prize's title, description, cost or active flag."""
        allowed = {"title", "description", "pointsCost", "isActive"}
        data = {k: v for k, v in updates.items() if k in allowed and v is not None}
        if "pointsCost" in data:
            _positive(data["pointsCost"], "Prize cost must be positive.")
        for field in ("title", "description"):
            if field in data:
                data[field] = data[field].strip()
        if not data:
            return
        data["updatedAt"] = firestore.SERVER_TIMESTAMP
        db.collection(GROUP_PRIZES).document(prize_id).update(data)

    @staticmethod
    def delete_prize(db: Client, prize_id: str) -> None:
        """Delete a prize."""
        db.collection(GROUP_PRIZES).document(prize_id).delete()

    @staticmethod
    def require_member(db: Client, group_id: str, user_id: str) -> GroupMember:
        """Return the caller's membership, raising unless they belong to the group."""
        member = GroupService.get_member(db, group_id, user_id)
        if not member:
            raise ForbiddenError("You are not a member of this group.")
        return member

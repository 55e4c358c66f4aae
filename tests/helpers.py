"""Shared fixtures for tests that run against the in-memory Firestore."""

from __future__ import annotations

import copy
import datetime
import unittest
from typing import Any
from unittest.mock import patch

from happypoints.constants import (
    GROUP_MEMBERS,
    GROUP_PENALTY_TYPES,
    GROUP_PRIZES,
    GROUP_TASKS,
    GROUPS,
    TASK_COMPLETIONS,
    USERS,
)
from happypoints.core.documents import membership_id
from tests.fakes import FakeFirestore, fake_transactional

GROUP_ID = "group1"
ADMIN_ID = "admin1"
ADMIN_NAME = "Alice"
MEMBER_ID = "member1"
MEMBER_NAME = "Bob"

SEED_TIME = datetime.datetime(2023, 6, 1, tzinfo=datetime.timezone.utc)


class FirestoreTestCase(unittest.TestCase):
    """Base test case with a fake database and a patched ``transactional``."""

    def setUp(self) -> None:
        """Create an empty database and patch the transaction decorator."""
        self.db = FakeFirestore()
        patcher = patch("firebase_admin.firestore.transactional", new=fake_transactional)
        patcher.start()
        self.addCleanup(patcher.stop)

    def seed_user(self, user_id: str, name: str = MEMBER_NAME, **counters: int) -> None:
        data: dict[str, Any] = {
            "email": f"{user_id}@example.com",
            "name": name,
            "currentPoints": 0,
            "totalEarned": 0,
            "totalRedeemed": 0,
            "totalPenalized": 0,
        }
        data.update(counters)
        self.db.seed(USERS, user_id, data)

    def seed_group(self, group_id: str = GROUP_ID, **fields: Any) -> None:
        data: dict[str, Any] = {
            "name": "Household",
            "description": "",
            "code": "ABC123",
            "adminId": ADMIN_ID,
            "adminName": ADMIN_NAME,
            "memberCount": 2,
            "maxMembers": 10,
            "isPrivate": False,
            "createdAt": SEED_TIME,
        }
        data.update(fields)
        self.db.seed(GROUPS, group_id, data)

    def seed_member(
        self,
        user_id: str,
        group_id: str = GROUP_ID,
        role: str = "member",
        name: str = MEMBER_NAME,
        **counters: int,
    ) -> None:
        data: dict[str, Any] = {
            "groupId": group_id,
            "userId": user_id,
            "userName": name,
            "userEmail": f"{user_id}@example.com",
            "role": role,
            "pointsEarned": 0,
            "pointsRedeemed": 0,
            "pointsPenalized": 0,
        }
        data.update(counters)
        self.db.seed(GROUP_MEMBERS, membership_id(group_id, user_id), data)

    def seed_household(self) -> None:
        """Seed a group with an admin and one member, both at zero points."""
        self.seed_group()
        self.seed_user(ADMIN_ID, name=ADMIN_NAME)
        self.seed_member(ADMIN_ID, role="admin", name=ADMIN_NAME)
        self.seed_user(MEMBER_ID)
        self.seed_member(MEMBER_ID)

    def seed_task(
        self, task_id: str, title: str = "Wash dishes", points: int = 20, **fields: Any
    ) -> None:
        data: dict[str, Any] = {
            "groupId": GROUP_ID,
            "title": title,
            "description": "",
            "points": points,
            "isActive": True,
            "createdBy": ADMIN_ID,
            "createdByName": ADMIN_NAME,
            "createdAt": SEED_TIME,
        }
        data.update(fields)
        self.db.seed(GROUP_TASKS, task_id, data)

    def seed_completion(
        self,
        completion_id: str,
        task_id: str,
        user_id: str = MEMBER_ID,
        points: int = 20,
        status: str = "pending",
    ) -> None:
        self.db.seed(
            TASK_COMPLETIONS,
            completion_id,
            {
                "taskId": task_id,
                "groupId": GROUP_ID,
                "userId": user_id,
                "userName": MEMBER_NAME,
                "completedAt": SEED_TIME,
                "pointsAwarded": points,
                "status": status,
            },
        )

    def seed_penalty_type(
        self,
        penalty_type_id: str,
        title: str = "Late",
        amount: int = 15,
        group_id: str = GROUP_ID,
        is_active: bool = True,
    ) -> None:
        self.db.seed(
            GROUP_PENALTY_TYPES,
            penalty_type_id,
            {
                "groupId": group_id,
                "title": title,
                "description": "",
                "amount": amount,
                "isActive": is_active,
                "createdBy": ADMIN_ID,
                "createdByName": ADMIN_NAME,
                "createdAt": SEED_TIME,
            },
        )

    def seed_prize(
        self,
        prize_id: str,
        title: str = "Movie night",
        points_cost: int = 50,
        group_id: str = GROUP_ID,
        is_active: bool = True,
    ) -> None:
        self.db.seed(
            GROUP_PRIZES,
            prize_id,
            {
                "groupId": group_id,
                "title": title,
                "description": "",
                "pointsCost": points_cost,
                "isActive": is_active,
                "createdBy": ADMIN_ID,
                "createdByName": ADMIN_NAME,
                "createdAt": SEED_TIME,
            },
        )

    def user(self, user_id: str = MEMBER_ID) -> dict[str, Any]:
        return self.db.doc(USERS, user_id) or {}

    def member(self, user_id: str = MEMBER_ID, group_id: str = GROUP_ID) -> dict[str, Any]:
        return self.db.doc(GROUP_MEMBERS, membership_id(group_id, user_id)) or {}

    def snapshot_state(self) -> dict[str, dict]:
        return copy.deepcopy(self.db.data)

    def assert_balanced(self, user_id: str = MEMBER_ID) -> None:
        """Assert the user's current balance equals earned minus redeemed."""
        user = self.user(user_id)
        self.assertEqual(
            user["currentPoints"], user["totalEarned"] - user["totalRedeemed"]
        )

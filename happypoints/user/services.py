"""Service layer for user profiles."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from firebase_admin import firestore

from happypoints.constants import INITIAL_POINTS, USERS
from happypoints.core.documents import snapshot_to_dict

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

    from .models import UserProfile


class UserService:
    """Service class for user profile operations."""

    @staticmethod
    def create_user_profile(db: Client, user_id: str, email: str, name: str) -> None:
        """Create a profile with all point counters at zero."""
        db.collection(USERS).document(user_id).set(
            {
                "email": email.lower().strip(),
                "name": name.strip(),
                "currentPoints": INITIAL_POINTS,
                "totalEarned": INITIAL_POINTS,
                "totalRedeemed": INITIAL_POINTS,
                "totalPenalized": INITIAL_POINTS,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }
        )

    @staticmethod
    def get_user_profile(db: Client, user_id: str) -> UserProfile | None:
        """Fetch a user profile by id."""
        snapshot = db.collection(USERS).document(user_id).get()
        return cast("UserProfile | None", snapshot_to_dict(snapshot))

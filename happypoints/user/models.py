"""Data models for the user blueprint."""

from happypoints.core.types import FirestoreDocument


class UserProfile(FirestoreDocument, total=False):
    """A user document in Firestore."""

    email: str
    name: str
    currentPoints: int
    totalEarned: int
    totalRedeemed: int
    totalPenalized: int

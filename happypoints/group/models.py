"""Data models for the group blueprint."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from happypoints.core.types import FirestoreDocument


class GroupRole(str, Enum):
    """Role of a user inside a group."""

    ADMIN = "admin"
    MEMBER = "member"


class JoinRequestStatus(str, Enum):
    """Review state of a request to join a group by its code."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class InvitationStatus(str, Enum):
    """State of an invitation sent by a group admin."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class Group(FirestoreDocument, total=False):
    """A group document in Firestore."""

    name: str
    description: str
    code: str
    adminId: str
    adminName: str
    memberCount: int
    maxMembers: int
    isPrivate: bool


class GroupMember(FirestoreDocument, total=False):
    """A membership document, keyed ``{groupId}_{userId}``."""

    groupId: str
    userId: str
    userName: str
    userEmail: str
    role: str
    pointsEarned: int
    pointsRedeemed: int
    pointsPenalized: int
    joinedAt: Any


class GroupJoinRequest(FirestoreDocument, total=False):
    groupId: str
    groupName: str
    userId: str
    userName: str
    userEmail: str
    status: str
    requestedAt: Any
    processedAt: Any
    processedBy: str
    processedByName: str
    rejectionReason: str


class GroupInvitation(FirestoreDocument, total=False):
    """An invitation; its document id is the code the invitee redeems."""

    groupId: str
    groupName: str
    adminId: str
    adminName: str
    inviteeEmail: str
    status: str
    expiresAt: Any
    hasAccount: bool
    inviteeUserId: Optional[str]
    acceptedAt: Any


class GroupPenaltyType(FirestoreDocument, total=False):
    """A reusable penalty an admin can apply to members."""

    groupId: str
    title: str
    description: str
    amount: int
    isActive: bool
    createdBy: str
    createdByName: str


class GroupPrize(FirestoreDocument, total=False):
    """A prize members can redeem with group points."""

    groupId: str
    title: str
    description: str
    pointsCost: int
    isActive: bool
    createdBy: str
    createdByName: str

"""Data models for the tasks blueprint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from happypoints.core.types import FirestoreDocument


class GroupTask(FirestoreDocument, total=False):
    """A point-earning task defined by a group admin."""

    groupId: str
    title: str
    description: str
    points: int
    isActive: bool
    createdBy: str
    createdByName: str


@dataclass
class TaskUpdate:
    """Fields an admin may change on a task; None leaves a field as is."""

    title: Optional[str] = None
    description: Optional[str] = None
    points: Optional[int] = None
    is_active: Optional[bool] = None

    def to_firestore(self) -> dict:
        """Return the Firestore update payload for the fields that are set."""
        data: dict = {}
        if self.title is not None:
            data["title"] = self.title.strip()
        if self.description is not None:
            data["description"] = self.description.strip()
        if self.points is not None:
            data["points"] = self.points
        if self.is_active is not None:
            data["isActive"] = self.is_active
        return data

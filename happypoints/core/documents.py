"""Helpers for turning Firestore snapshots into plain dictionaries."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from google.cloud.firestore_v1.base_document import DocumentSnapshot


def snapshot_to_dict(snapshot: DocumentSnapshot | None) -> dict[str, Any] | None:
    """Return the snapshot's data with its id, or None if it doesn't exist."""
    if snapshot is None or not snapshot.exists:
        return None
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data


def snapshots_to_list(snapshots: Iterable[DocumentSnapshot]) -> list[dict[str, Any]]:
    """Convert a query stream into a list of dictionaries."""
    results = []
    for snapshot in snapshots:
        data = snapshot_to_dict(snapshot)
        if data is not None:
            results.append(data)
    return results


def membership_id(group_id: str, user_id: str) -> str:
    """Return the document id of a user's membership in a group."""
    return f"{group_id}_{user_id}"

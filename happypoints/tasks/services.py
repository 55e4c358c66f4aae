"""Service layer for group tasks and task completions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore

from happypoints.constants import GROUP_TASKS, TASK_COMPLETIONS
from happypoints.core.documents import snapshot_to_dict, snapshots_to_list
from happypoints.core.transactions import run_transaction
from happypoints.errors import (
    DuplicateResourceError,
    InvalidAmountError,
    NotFoundError,
    ValidationError,
)
from happypoints.ledger.models import CompletionStatus

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

    from happypoints.ledger.models import TaskCompletion

    from .models import GroupTask, TaskUpdate


logger = logging.getLogger(__name__)


def _check_points(points: Any) -> None:
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise InvalidAmountError("Points must be a positive number.")


class TaskService:
    """Service class for task-related operations."""

    @staticmethod
    def create_task(  # noqa: PLR0913
        db: Client,
        group_id: str,
        admin_id: str,
        admin_name: str,
        title: str,
        description: str,
        points: int,
    ) -> str:
        """Create a new task for a group."""
        _check_points(points)
        if not title or not title.strip():
            raise ValidationError("Task title is required.")

        task_ref = db.collection(GROUP_TASKS).document()
        task_ref.set(
            {
                "groupId": group_id,
                "title": title.strip(),
                "description": (description or "").strip(),
                "points": points,
                "isActive": True,
                "createdBy": admin_id,
                "createdByName": admin_name,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }
        )
        logger.info(f"Task {task_ref.id} created in group {group_id}")
        return task_ref.id

    @staticmethod
    def get_task(db: Client, task_id: str) -> GroupTask | None:
        """Fetch a single task by id."""
        snapshot = db.collection(GROUP_TASKS).document(task_id).get()
        return cast("GroupTask | None", snapshot_to_dict(snapshot))

    @staticmethod
    def get_group_tasks(
        db: Client, group_id: str, active_only: bool = False
    ) -> list[GroupTask]:
        """Fetch the tasks of a group, newest first."""
        query = db.collection(GROUP_TASKS).where(
            filter=firestore.FieldFilter("groupId", "==", group_id)
        )
        if active_only:
            query = query.where(filter=firestore.FieldFilter("isActive", "==", True))
        query = query.order_by("createdAt", direction=firestore.Query.DESCENDING)
        return cast("list[GroupTask]", snapshots_to_list(query.stream()))

    @staticmethod
    def update_task(db: Client, task_id: str, update: TaskUpdate) -> None:
        """Apply an admin's edits to a task."""
        if update.points is not None:
            _check_points(update.points)
        data = update.to_firestore()
        if not data:
            return
        data["updatedAt"] = firestore.SERVER_TIMESTAMP
        db.collection(GROUP_TASKS).document(task_id).update(data)

    @staticmethod
    def delete_task(db: Client, task_id: str) -> None:
        """Delete a task; existing completions keep their point snapshot."""
        db.collection(GROUP_TASKS).document(task_id).delete()

    @staticmethod
    def complete_task(db: Client, task_id: str, user_id: str, user_name: str) -> str:
        """Submit a pending completion of a task for admin review.

        The completion snapshots the task's current point value. The task and
        the user's earlier completions are read in the same transaction as the
        write, so two concurrent submissions cannot both be accepted.
        """
        task_ref = db.collection(GROUP_TASKS).document(task_id)
        previous_query = (
            db.collection(TASK_COMPLETIONS)
            .where(filter=firestore.FieldFilter("taskId", "==", task_id))
            .where(filter=firestore.FieldFilter("userId", "==", user_id))
        )

        @firestore.transactional
        def submit_in_transaction(transaction: Transaction) -> str:
            snapshot = task_ref.get(transaction=transaction)
            task = snapshot.to_dict() if snapshot.exists else None
            if not task:
                raise NotFoundError("Task not found.")
            if not task.get("isActive"):
                raise ValidationError("Task is not active.")
            for previous in previous_query.stream(transaction=transaction):
                # A rejected completion may be resubmitted.
                if previous.get("status") != CompletionStatus.REJECTED.value:
                    raise DuplicateResourceError("Task has already been completed.")

            completion_ref = db.collection(TASK_COMPLETIONS).document()
            transaction.set(
                completion_ref,
                {
                    "taskId": task_id,
                    "groupId": task["groupId"],
                    "userId": user_id,
                    "userName": user_name,
                    "completedAt": firestore.SERVER_TIMESTAMP,
                    "pointsAwarded": task["points"],
                    "status": CompletionStatus.PENDING.value,
                },
            )
            return completion_ref.id

        completion_id = run_transaction("complete_task", submit_in_transaction, db)
        logger.info(f"User {user_id} submitted completion of task {task_id}")
        return completion_id

    @staticmethod
    def get_completion(db: Client, completion_id: str) -> TaskCompletion | None:
        """Fetch a task completion by id."""
        ref = db.collection(TASK_COMPLETIONS).document(completion_id)
        return cast("TaskCompletion | None", snapshot_to_dict(ref.get()))

    @staticmethod
    def get_group_completions(
        db: Client, group_id: str, status: CompletionStatus | None = None
    ) -> list[TaskCompletion]:
        """Fetch a group's task completions, newest first."""
        query = db.collection(TASK_COMPLETIONS).where(
            filter=firestore.FieldFilter("groupId", "==", group_id)
        )
        if status is not None:
            query = query.where(filter=firestore.FieldFilter("status", "==", status.value))
        query = query.order_by("completedAt", direction=firestore.Query.DESCENDING)
        return cast("list[TaskCompletion]", snapshots_to_list(query.stream()))

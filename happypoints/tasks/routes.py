"""Routes for the tasks blueprint."""

from firebase_admin import firestore
from flask import g, request

from happypoints.auth.decorators import login_required
from happypoints.core.responses import api_response
from happypoints.errors import NotFoundError, ValidationError
from happypoints.group.models import GroupRole
from happypoints.group.services import GroupService
from happypoints.ledger import CompletionStatus, PointsLedger

from . import bp
from .forms import RejectCompletionForm, TaskForm
from .models import TaskUpdate
from .services import TaskService


def _get_task_or_404(db, task_id):
    task = TaskService.get_task(db, task_id)
    if not task:
        raise NotFoundError("Task not found.")
    return task


def _get_completion_or_404(db, completion_id):
    completion = TaskService.get_completion(db, completion_id)
    if not completion:
        raise NotFoundError("Task completion not found.")
    return completion


@bp.route("/groups/<string:group_id>/tasks", methods=["GET"])
@login_required
def list_tasks(group_id):
    """List a group's tasks; members only see active ones."""
    db = firestore.client()
    member = GroupService.require_member(db, group_id, g.user["uid"])
    active_only = member.get("role") != GroupRole.ADMIN.value or request.args.get(
        "active", ""
    ).lower() in ["true", "1"]
    tasks = TaskService.get_group_tasks(db, group_id, active_only=active_only)
    return api_response("Tasks loaded.", tasks)


@bp.route("/groups/<string:group_id>/tasks", methods=["POST"])
@login_required
def create_task(group_id):
    """Create a task (admin only)."""
    form = TaskForm()
    form.validate_or_raise()
    if not form.title.data:
        raise ValidationError("Task title is required.")
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    task_id = TaskService.create_task(
        db,
        group_id,
        g.user["uid"],
        g.user["name"],
        form.title.data,
        form.description.data or "",
        form.points.data,
    )
    return api_response("Task created successfully!", {"id": task_id}, 201)


@bp.route("/tasks/<string:task_id>", methods=["PATCH"])
@login_required
def update_task(task_id):
    """Edit a task (admin only)."""
    form = TaskForm()
    form.validate_or_raise()
    db = firestore.client()
    task = _get_task_or_404(db, task_id)
    GroupService.require_admin(db, task["groupId"], g.user["uid"])
    TaskService.update_task(
        db,
        task_id,
        TaskUpdate(
            title=form.submitted(form.title),
            description=form.submitted(form.description),
            points=form.submitted(form.points),
            is_active=form.submitted(form.is_active),
        ),
    )
    return api_response("Task updated successfully!")


@bp.route("/tasks/<string:task_id>", methods=["DELETE"])
@login_required
def delete_task(task_id):
    """Delete a task (admin only)."""
    db = firestore.client()
    task = _get_task_or_404(db, task_id)
    GroupService.require_admin(db, task["groupId"], g.user["uid"])
    TaskService.delete_task(db, task_id)
    return api_response("Task deleted successfully!")


@bp.route("/tasks/<string:task_id>/complete", methods=["POST"])
@login_required
def complete_task(task_id):
    """Submit a completion of a task for admin review."""
    db = firestore.client()
    task = _get_task_or_404(db, task_id)
    GroupService.require_member(db, task["groupId"], g.user["uid"])
    completion_id = TaskService.complete_task(
        db, task_id, g.user["uid"], g.user["name"]
    )
    return api_response("Task completed successfully!", {"id": completion_id}, 201)


@bp.route("/groups/<string:group_id>/completions", methods=["GET"])
@login_required
def list_completions(group_id):
    """List a group's task completions, optionally filtered by status."""
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    status = None
    if request.args.get("status"):
        try:
            status = CompletionStatus(request.args["status"])
        except ValueError as e:
            raise ValidationError("Unknown completion status.") from e
    completions = TaskService.get_group_completions(db, group_id, status)
    return api_response("Completions loaded.", completions)


@bp.route("/completions/<string:completion_id>/approve", methods=["POST"])
@login_required
def approve_completion(completion_id):
    """Approve a pending completion and award its points."""
    db = firestore.client()
    completion = _get_completion_or_404(db, completion_id)
    GroupService.require_admin(db, completion["groupId"], g.user["uid"])
    result = PointsLedger.award_for_task_completion(
        db, completion_id, g.user["uid"], g.user["name"]
    )
    return api_response("Task completion approved!", result.to_dict())


@bp.route("/completions/<string:completion_id>/reject", methods=["POST"])
@login_required
def reject_completion(completion_id):
    """Reject a pending completion."""
    form = RejectCompletionForm()
    form.validate_or_raise()
    db = firestore.client()
    completion = _get_completion_or_404(db, completion_id)
    GroupService.require_admin(db, completion["groupId"], g.user["uid"])
    PointsLedger.reject_task_completion(
        db, completion_id, g.user["uid"], g.user["name"], form.reason.data
    )
    return api_response("Task completion rejected.")

"""Routes for the group blueprint."""

from firebase_admin import firestore
from flask import current_app, g, request

from happypoints.auth.decorators import login_required
from happypoints.constants import DEFAULT_MAX_MEMBERS
from happypoints.core.responses import api_response
from happypoints.errors import NotFoundError, ValidationError
from happypoints.ledger import AdHoc, PointsLedger, TaskLinked
from happypoints.tasks.services import TaskService
from happypoints.utils import limit_arg

from . import bp
from .forms import (
    ApplyPenaltyForm,
    AwardPointsForm,
    GroupForm,
    InviteForm,
    JoinGroupForm,
    PenaltyTypeForm,
    PrizeForm,
    RejectJoinRequestForm,
)
from .membership import MembershipService
from .models import JoinRequestStatus
from .services import GroupService


def _penalty_type_in_group(db, group_id, penalty_type_id):
    penalty_type = GroupService.get_penalty_type(db, penalty_type_id)
    if not penalty_type or penalty_type.get("groupId") != group_id:
        raise NotFoundError("Penalty type not found.")
    return penalty_type


def _prize_in_group(db, group_id, prize_id):
    prize = GroupService.get_prize(db, prize_id)
    if not prize or prize.get("groupId") != group_id:
        raise NotFoundError("Prize not found.")
    return prize


@bp.route("", methods=["GET"])
@login_required
def list_groups():
    """List the groups the caller belongs to."""
    db = firestore.client()
    groups = [
        GroupService.for_viewer(group, g.user["uid"])
        for group in GroupService.get_user_groups(db, g.user["uid"])
    ]
    return api_response("Groups loaded.", groups)


@bp.route("", methods=["POST"])
@login_required
def create_group():
    """Create a new group with the caller as admin."""
    form = GroupForm()
    form.validate_or_raise()
    db = firestore.client()
    group_id = GroupService.create_group(
        db,
        admin_id=g.user["uid"],
        admin_name=g.user["name"],
        admin_email=g.user["email"],
        name=form.name.data,
        description=form.description.data or "",
        max_members=form.max_members.data or DEFAULT_MAX_MEMBERS,
        is_private=form.is_private.data,
    )
    return api_response("Group created successfully!", {"id": group_id}, 201)


@bp.route("/join", methods=["POST"])
@login_required
def join_group():
    """Ask to join a group with its code; an admin reviews the request."""
    form = JoinGroupForm()
    form.validate_or_raise()
    db = firestore.client()
    group_id, request_id = MembershipService.join_group_by_code(
        db, form.code.data, g.user["uid"], g.user["name"], g.user["email"]
    )
    return api_response(
        "Join request submitted.", {"id": request_id, "groupId": group_id}, 201
    )


@bp.route("/invitations/<string:code>", methods=["GET"])
@login_required
def view_invitation(code):
    """Show an invitation to the person holding its code."""
    db = firestore.client()
    invitation = MembershipService.get_invitation(db, code)
    if not invitation:
        raise NotFoundError("Invalid invitation.")
    return api_response("Invitation loaded.", invitation)


@bp.route("/invitations/<string:code>/accept", methods=["POST"])
@login_required
def accept_invitation(code):
    """Join a group through an invitation."""
    db = firestore.client()
    group_id = MembershipService.accept_invitation(
        db, code, g.user["uid"], g.user["name"], g.user["email"]
    )
    return api_response("Successfully joined the group!", {"id": group_id})


@bp.route("/<string:group_id>", methods=["GET"])
@login_required
def view_group(group_id):
    """Show a group the caller belongs to."""
    db = firestore.client()
    GroupService.require_member(db, group_id, g.user["uid"])
    group = GroupService.get_group(db, group_id)
    if not group:
        raise NotFoundError("Group not found.")
    return api_response("Group loaded.", GroupService.for_viewer(group, g.user["uid"]))


@bp.route("/<string:group_id>/members", methods=["GET"])
@login_required
def list_members(group_id):
    """List a group's members and their group-scoped points."""
    db = firestore.client()
    GroupService.require_member(db, group_id, g.user["uid"])
    return api_response("Members loaded.", GroupService.get_members(db, group_id))


@bp.route("/<string:group_id>/members/<string:member_id>/award", methods=["POST"])
@login_required
def award_points(group_id, member_id):
    """Award points to a member, optionally for a specific task."""
    form = AwardPointsForm()
    form.validate_or_raise()
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])

    reason = AdHoc()
    if form.task_id.data:
        task = TaskService.get_task(db, form.task_id.data)
        if not task or task.get("groupId") != group_id:
            raise NotFoundError("Task not found.")
        reason = TaskLinked(task_id=task["id"], task_title=task["title"])

    result = PointsLedger.award_direct(
        db,
        group_id,
        member_id,
        g.user["uid"],
        g.user["name"],
        form.points.data,
        reason,
    )
    return api_response(f"Awarded {result.amount} points.", result.to_dict())


@bp.route("/<string:group_id>/members/<string:member_id>/penalties", methods=["POST"])
@login_required
def apply_penalty(group_id, member_id):
    """Apply a penalty type to a member."""
    form = ApplyPenaltyForm()
    form.validate_or_raise()
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    result = PointsLedger.apply_penalty(
        db,
        group_id,
        member_id,
        form.penalty_type_id.data,
        g.user["uid"],
        g.user["name"],
        form.reason.data,
    )
    return api_response(f"Penalty of {result.amount} points applied.", result.to_dict())


@bp.route("/<string:group_id>/penalties", methods=["GET"])
@login_required
def list_penalties(group_id):
    """List the most recent penalties applied in a group."""
    db = firestore.client()
    GroupService.require_member(db, group_id, g.user["uid"])
    limit = limit_arg(current_app.config["PAGE_LIMIT"])
    return api_response(
        "Penalties loaded.", GroupService.get_group_penalties(db, group_id, limit)
    )


@bp.route("/<string:group_id>/penalty-types", methods=["GET"])
@login_required
def list_penalty_types(group_id):
    """List a group's penalty types."""
    db = firestore.client()
    GroupService.require_member(db, group_id, g.user["uid"])
    active_only = request.args.get("active", "").lower() in ["true", "1"]
    return api_response(
        "Penalty types loaded.",
        GroupService.get_penalty_types(db, group_id, active_only=active_only),
    )


@bp.route("/<string:group_id>/penalty-types", methods=["POST"])
@login_required
def create_penalty_type(group_id):
    """Create a penalty type."""
    form = PenaltyTypeForm()
    form.validate_or_raise()
    if not form.title.data:
        raise ValidationError("Title is required.")
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    penalty_type_id = GroupService.create_penalty_type(
        db,
        group_id,
        form.title.data,
        form.description.data or "",
        form.amount.data,
        g.user["uid"],
        g.user["name"],
    )
    return api_response("Penalty type created.", {"id": penalty_type_id}, 201)


@bp.route(
    "/<string:group_id>/penalty-types/<string:penalty_type_id>", methods=["PATCH"]
)
@login_required
def update_penalty_type(group_id, penalty_type_id):
    """Edit or (de)activate a penalty type."""
    form = PenaltyTypeForm()
    form.validate_or_raise()
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    _penalty_type_in_group(db, group_id, penalty_type_id)
    GroupService.update_penalty_type(
        db,
        penalty_type_id,
        {
            "title": form.submitted(form.title),
            "description": form.submitted(form.description),
            "amount": form.submitted(form.amount),
            "isActive": form.submitted(form.is_active),
        },
    )
    return api_response("Penalty type updated.")


@bp.route(
    "/<string:group_id>/penalty-types/<string:penalty_type_id>", methods=["DELETE"]
)
@login_required
def delete_penalty_type(group_id, penalty_type_id):
    """Delete a penalty type."""
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    _penalty_type_in_group(db, group_id, penalty_type_id)
    GroupService.delete_penalty_type(db, penalty_type_id)
    return api_response("Penalty type deleted.")


@bp.route("/<string:group_id>/prizes", methods=["GET"])
@login_required
def list_prizes(group_id):
    """List a group's prizes."""
    db = firestore.client()
    GroupService.require_member(db, group_id, g.user["uid"])
    active_only = request.args.get("active", "").lower() in ["true", "1"]
    return api_response(
        "Prizes loaded.", GroupService.get_prizes(db, group_id, active_only=active_only)
    )


@bp.route("/<string:group_id>/prizes", methods=["POST"])
@login_required
def create_prize(group_id):
    """Create a prize."""
    form = PrizeForm()
    form.validate_or_raise()
    if not form.title.data:
        raise ValidationError("Title is required.")
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    prize_id = GroupService.create_prize(
        db,
        group_id,
        form.title.data,
        form.description.data or "",
        form.points_cost.data,
        g.user["uid"],
        g.user["name"],
    )
    return api_response("Prize created.", {"id": prize_id}, 201)


@bp.route("/<string:group_id>/prizes/<string:prize_id>", methods=["PATCH"])
@login_required
def update_prize(group_id, prize_id):
    """Edit or (de)activate a prize."""
    form = PrizeForm()
    form.validate_or_raise()
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    _prize_in_group(db, group_id, prize_id)
    GroupService.update_prize(
        db,
        prize_id,
        {
            "title": form.submitted(form.title),
            "description": form.submitted(form.description),
            "pointsCost": form.submitted(form.points_cost),
            "isActive": form.submitted(form.is_active),
        },
    )
    return api_response("Prize updated.")


@bp.route("/<string:group_id>/prizes/<string:prize_id>", methods=["DELETE"])
@login_required
def delete_prize(group_id, prize_id):
    """Delete a prize."""
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    _prize_in_group(db, group_id, prize_id)
    GroupService.delete_prize(db, prize_id)
    return api_response("Prize deleted.")


@bp.route("/<string:group_id>/prizes/<string:prize_id>/redeem", methods=["POST"])
@login_required
def redeem_prize(group_id, prize_id):
    """Spend the caller's group points on a prize."""
    db = firestore.client()
    GroupService.require_member(db, group_id, g.user["uid"])
    result = PointsLedger.redeem_prize(db, group_id, g.user["uid"], prize_id)
    return api_response(f"You redeemed {result.amount} points!", result.to_dict())


@bp.route("/<string:group_id>/join-requests", methods=["GET"])
@login_required
def list_join_requests(group_id):
    """List a group's join requests, pending ones unless a status is given."""
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    status = request.args.get("status", JoinRequestStatus.PENDING.value)
    try:
        status = JoinRequestStatus(status)
    except ValueError as e:
        raise ValidationError(f"Unknown join request status: {status}") from e
    return api_response(
        "Join requests loaded.",
        MembershipService.get_join_requests(db, group_id, status),
    )


@bp.route(
    "/<string:group_id>/join-requests/<string:request_id>/approve", methods=["POST"]
)
@login_required
def approve_join_request(group_id, request_id):
    """Approve a join request, adding the requester to the group."""
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    user_id = MembershipService.approve_join_request(
        db, group_id, request_id, g.user["uid"], g.user["name"]
    )
    return api_response("Join request approved.", {"userId": user_id})


@bp.route(
    "/<string:group_id>/join-requests/<string:request_id>/reject", methods=["POST"]
)
@login_required
def reject_join_request(group_id, request_id):
    """Reject a join request."""
    form = RejectJoinRequestForm()
    form.validate_or_raise()
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    MembershipService.reject_join_request(
        db, group_id, request_id, g.user["uid"], g.user["name"], form.reason.data
    )
    return api_response("Join request rejected.")


@bp.route("/<string:group_id>/invitations", methods=["GET"])
@login_required
def list_invitations(group_id):
    """List a group's invitations with the number still pending."""
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    return api_response(
        "Invitations loaded.",
        {
            "invitations": MembershipService.get_invitations(db, group_id),
            "pendingCount": MembershipService.count_pending_invitations(db, group_id),
        },
    )


@bp.route("/<string:group_id>/invitations", methods=["POST"])
@login_required
def send_invitations(group_id):
    """Invite people to the group by email; each gets a code to accept."""
    form = InviteForm()
    form.validate_or_raise()
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    codes = MembershipService.send_invitations(
        db, group_id, g.user["uid"], g.user["name"], form.email_list()
    )
    return api_response(f"Sent {len(codes)} invitation(s).", {"codes": codes}, 201)


@bp.route("/<string:group_id>/invitations/<string:code>", methods=["DELETE"])
@login_required
def cancel_invitation(group_id, code):
    """Withdraw a pending invitation."""
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    MembershipService.cancel_invitation(db, group_id, code)
    return api_response("Invitation cancelled.")


@bp.route("/<string:group_id>/invitations/<string:code>/resend", methods=["POST"])
@login_required
def resend_invitation(group_id, code):
    """Replace a pending invitation with a new code."""
    db = firestore.client()
    GroupService.require_admin(db, group_id, g.user["uid"])
    new_code = MembershipService.resend_invitation(
        db, group_id, code, g.user["uid"], g.user["name"]
    )
    return api_response("Invitation resent.", {"code": new_code})

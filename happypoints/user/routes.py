"""Routes for the user blueprint."""

from firebase_admin import firestore
from flask import current_app, g

from happypoints.auth.decorators import login_required
from happypoints.core.responses import api_response
from happypoints.errors import DuplicateResourceError, NotFoundError
from happypoints.ledger import PointsLedger
from happypoints.utils import limit_arg

from . import bp
from .services import UserService


@bp.route("/me", methods=["GET"])
@login_required
def profile():
    """Return the caller's profile and point totals."""
    db = firestore.client()
    user = UserService.get_user_profile(db, g.user["uid"])
    if not user:
        raise NotFoundError("User profile not found.")
    return api_response("Profile loaded.", user)


@bp.route("/me", methods=["POST"])
@login_required
def create_profile():
    """Create the caller's profile after their first sign-in."""
    db = firestore.client()
    if UserService.get_user_profile(db, g.user["uid"]):
        raise DuplicateResourceError("User profile already exists.")
    UserService.create_user_profile(db, g.user["uid"], g.user["email"], g.user["name"])
    current_app.logger.info(f"Created profile for user {g.user['uid']}")
    return api_response("Account created successfully!", {"id": g.user["uid"]}, 201)


@bp.route("/me/transactions", methods=["GET"])
@login_required
def transactions():
    """Return the caller's most recent point transactions."""
    db = firestore.client()
    limit = limit_arg(current_app.config["TRANSACTIONS_LIMIT"])
    records = PointsLedger.get_user_transactions(db, g.user["uid"], limit=limit)
    return api_response("Transactions loaded.", records)

"""Routes for the group blueprint."""

from firebase_admin import firestore
from flask import current_app, flash, g, redirect, render_template, session, url_for

from shareddiary.auth.decorators import login_required
from shareddiary.constants import SESSION_LAST_GROUP_ID, STATUS_PENDING
from shareddiary.errors import AppError
from shareddiary.user.services import UserService
from shareddiary.utils import describe_backend_error

from . import bp
from .forms import CreateGroupForm, JoinGroupForm, MemberActionForm
from .services import GroupService


def _flash_form_errors(form):
    for errors in form.errors.values():
        for error in errors:
            flash(error, "danger")


def _flash_failure(action, e):
    """Log a failed group action and show the user what went wrong."""
    if isinstance(e, AppError):
        current_app.logger.warning(f"{action} failed: {e.message}")
    else:
        current_app.logger.error(f"{action} failed: {e}")
    flash(describe_backend_error(e), "danger")


@bp.route("/", methods=["GET"])
@login_required
def view_groups():
    """Show the user's groups with the create and join forms."""
    db = firestore.client()
    try:
        groups = UserService.get_user_groups(db, g.user["uid"])
    except Exception as e:
        _flash_failure("Loading groups", e)
        groups = []

    last_group_id = session.get(SESSION_LAST_GROUP_ID)
    if last_group_id not in {group["id"] for group in groups}:
        last_group_id = None

    return render_template(
        "groups.html",
        groups=groups,
        last_group_id=last_group_id,
        create_form=CreateGroupForm(),
        join_form=JoinGroupForm(),
    )


@bp.route("/create", methods=["POST"])
@login_required
def create_group():
    """Create a new group with the current user as its admin."""
    form = CreateGroupForm()
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return redirect(url_for(".view_groups"))

    db = firestore.client()
    try:
        group_id = GroupService.create_group(
            db,
            g.user["uid"],
            form.name.data,
            max_attempts=current_app.config["GROUP_ID_MAX_ATTEMPTS"],
        )
    except Exception as e:
        _flash_failure("Group creation", e)
        return redirect(url_for(".view_groups"))

    flash(f"Group created. Share the ID {group_id} to invite others.", "success")
    return redirect(url_for(".view_group", group_id=group_id))


@bp.route("/join", methods=["POST"])
@login_required
def join_group():
    """Send a join request for the group id the user typed in."""
    form = JoinGroupForm()
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return redirect(url_for(".view_groups"))

    db = firestore.client()
    group_id = form.group_id.data.strip()
    try:
        status = GroupService.join_group(db, group_id, g.user["uid"])
    except Exception as e:
        _flash_failure("Join request", e)
        return redirect(url_for(".view_groups"))

    if status == STATUS_PENDING:
        flash("Request sent. Waiting for admin approval.", "info")
    else:
        flash("You are already a member of this group.", "info")
    return redirect(url_for(".view_group", group_id=group_id))


@bp.route("/<string:group_id>", methods=["GET"])
@login_required
def view_group(group_id):
    """Open a group: approved members go to the diary, others wait."""
    db = firestore.client()
    try:
        group, status = GroupService.open_group(db, group_id, g.user["uid"])
    except Exception as e:
        _flash_failure("Opening group", e)
        return redirect(url_for(".view_groups"))

    session[SESSION_LAST_GROUP_ID] = group_id
    if status == STATUS_PENDING:
        return render_template("waiting.html", group=group, group_id=group_id)
    return redirect(url_for("diary.timeline", group_id=group_id))


@bp.route("/<string:group_id>/members", methods=["GET"])
@login_required
def view_members(group_id):
    """List a group's approved and pending members."""
    db = firestore.client()
    try:
        GroupService.require_approved_member(db, group_id, g.user["uid"])
        group, approved, pending = GroupService.get_members(db, group_id)
    except Exception as e:
        _flash_failure("Loading members", e)
        return redirect(url_for(".view_groups"))

    return render_template(
        "members.html",
        group=group,
        group_id=group_id,
        approved_members=approved,
        pending_members=pending,
        is_admin=group.get("adminId") == g.user["uid"],
        action_form=MemberActionForm(),
    )


@bp.route("/<string:group_id>/requests", methods=["GET"])
@login_required
def view_requests(group_id):
    """List pending join requests. Admin only."""
    db = firestore.client()
    try:
        pending = GroupService.get_pending_members(db, group_id, g.user["uid"])
        group = GroupService.get_group(db, group_id)
    except Exception as e:
        _flash_failure("Loading join requests", e)
        return redirect(url_for(".view_group", group_id=group_id))

    return render_template(
        "requests.html",
        group=group,
        group_id=group_id,
        pending_members=pending,
        action_form=MemberActionForm(),
    )


@bp.route("/<string:group_id>/approve/<string:member_uid>", methods=["POST"])
@login_required
def approve_member(group_id, member_uid):
    """Approve a pending member."""
    form = MemberActionForm()
    if form.validate_on_submit():
        db = firestore.client()
        try:
            member = GroupService.approve_member(
                db, group_id, g.user["uid"], member_uid
            )
            flash(f"{member.get('name')} has been approved.", "success")
        except Exception as e:
            _flash_failure("Approval", e)
    return redirect(url_for(".view_requests", group_id=group_id))


@bp.route("/<string:group_id>/reject/<string:member_uid>", methods=["POST"])
@login_required
def reject_member(group_id, member_uid):
    """Reject a pending join request."""
    form = MemberActionForm()
    if form.validate_on_submit():
        db = firestore.client()
        try:
            member = GroupService.reject_member(
                db, group_id, g.user["uid"], member_uid
            )
            flash(f"Request from {member.get('name')} rejected.", "info")
        except Exception as e:
            _flash_failure("Rejection", e)
    return redirect(url_for(".view_requests", group_id=group_id))


@bp.route("/<string:group_id>/remove/<string:member_uid>", methods=["POST"])
@login_required
def remove_member(group_id, member_uid):
    """Remove a member from the group."""
    form = MemberActionForm()
    if form.validate_on_submit():
        db = firestore.client()
        try:
            member = GroupService.remove_member(
                db, group_id, g.user["uid"], member_uid
            )
            flash(f"{member.get('name')} has been removed from the group.", "success")
        except Exception as e:
            _flash_failure("Member removal", e)
    return redirect(url_for(".view_members", group_id=group_id))


@bp.route("/<string:group_id>/delete", methods=["POST"])
@login_required
def delete_group(group_id):
    """Delete a group and everything in it. Admin only."""
    form = MemberActionForm()
    if not form.validate_on_submit():
        return redirect(url_for(".view_group", group_id=group_id))

    db = firestore.client()
    try:
        failed = GroupService.delete_group(db, group_id, g.user["uid"])
    except Exception as e:
        _flash_failure("Group deletion", e)
        return redirect(url_for(".view_members", group_id=group_id))

    if session.get(SESSION_LAST_GROUP_ID) == group_id:
        session.pop(SESSION_LAST_GROUP_ID)
    if failed:
        flash(
            f"Group deleted, but {len(failed)} member profile(s) could not be updated.",
            "warning",
        )
    else:
        flash("Group deleted.", "success")
    return redirect(url_for(".view_groups"))


"""Routes for the diary blueprint."""

import datetime
import json
from zoneinfo import ZoneInfo

from firebase_admin import firestore
from flask import (
    Response,
    current_app,
    flash,
    g,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    stream_with_context,
    url_for,
)

from shareddiary.auth.decorators import login_required
from shareddiary.constants import MOODS, SESSION_LAST_GROUP_ID, SSE_KEEPALIVE_SECONDS
from shareddiary.errors import AppError, PermissionDeniedError
from shareddiary.group.forms import MemberActionForm
from shareddiary.group.services import GroupService
from shareddiary.utils import describe_backend_error

from . import bp
from .forms import EntryForm, FilterForm
from .services import EntryService


def _diary_timezone():
    """Return the zone used to turn entry timestamps into calendar dates."""
    name = current_app.config.get("DIARY_TIMEZONE") or "UTC"
    if name == "UTC":
        return datetime.timezone.utc
    return ZoneInfo(name)


def _open_diary(db, group_id):
    """Load the group for an approved member.

    Returns ``(group, None)`` or ``(None, redirect_response)``.
    """
    try:
        group = GroupService.require_approved_member(db, group_id, g.user["uid"])
    except PermissionDeniedError:
        return None, redirect(url_for("group.view_group", group_id=group_id))
    except Exception as e:
        current_app.logger.warning(f"Could not open diary {group_id}: {e}")
        flash(describe_backend_error(e), "danger")
        return None, redirect(url_for("group.view_groups"))

    session[SESSION_LAST_GROUP_ID] = group_id
    return group, None


def _filter_args():
    return {
        "author": request.args.get("author") or None,
        "mood": request.args.get("mood") or None,
        "date": request.args.get("date") or None,
        "sort": request.args.get("sort") or None,
    }


@bp.route("/<string:group_id>", methods=["GET"])
@login_required
def timeline(group_id):
    """Show every entry of the group, newest first, grouped by date."""
    db = firestore.client()
    group, response = _open_diary(db, group_id)
    if response:
        return response

    tz = _diary_timezone()
    try:
        entries = EntryService.list_entries(db, group_id)
    except Exception as e:
        current_app.logger.error(f"Error loading entries for {group_id}: {e}")
        flash(describe_backend_error(e), "danger")
        entries = []

    return render_template(
        "timeline.html",
        group=group,
        group_id=group_id,
        days=EntryService.group_by_date(entries, tz),
        is_admin=group.get("adminId") == g.user["uid"],
        action_form=MemberActionForm(),
    )


@bp.route("/<string:group_id>/add", methods=["GET", "POST"])
@login_required
def add_entry(group_id):
    """Write a new diary entry."""
    db = firestore.client()
    group, response = _open_diary(db, group_id)
    if response:
        return response

    form = EntryForm()
    if form.validate_on_submit():
        try:
            EntryService.add_entry(
                db, group_id, g.user["uid"], form.text.data, form.mood.data
            )
        except AppError as e:
            flash(e.message, "danger")
        except Exception as e:
            current_app.logger.error(f"Error saving entry in {group_id}: {e}")
            flash(describe_backend_error(e), "danger")
        else:
            flash("Entry saved.", "success")
            return redirect(url_for(".timeline", group_id=group_id))

    return render_template("add_entry.html", group=group, group_id=group_id, form=form)


@bp.route("/<string:group_id>/view", methods=["GET"])
@login_required
def view_diary(group_id):
    """Browse entries with author, mood and date filters."""
    db = firestore.client()
    group, response = _open_diary(db, group_id)
    if response:
        return response

    tz = _diary_timezone()
    filters = _filter_args()
    try:
        entries = EntryService.list_entries(db, group_id)
    except Exception as e:
        current_app.logger.error(f"Error loading entries for {group_id}: {e}")
        flash(describe_backend_error(e), "danger")
        entries = []

    try:
        filtered = EntryService.filter_entries(entries, tz=tz, **filters)
    except AppError as e:
        flash(e.message, "danger")
        filtered = EntryService.sort_entries(entries)

    form = FilterForm(formdata=request.args)
    form.author.choices = [("", "All authors")] + [
        (name, name) for name in EntryService.author_names(entries)
    ]
    return render_template(
        "view_diary.html",
        group=group,
        group_id=group_id,
        form=form,
        days=EntryService.group_by_date(filtered, tz),
        total=len(filtered),
    )


@bp.route("/<string:group_id>/entries.json", methods=["GET"])
@login_required
def entries_json(group_id):
    """Return the (optionally filtered) entries as JSON."""
    db = firestore.client()
    tz = _diary_timezone()
    try:
        GroupService.require_approved_member(db, group_id, g.user["uid"])
        entries = EntryService.filter_entries(
            EntryService.list_entries(db, group_id), tz=tz, **_filter_args()
        )
    except AppError as e:
        return jsonify({"status": "error", "message": e.message}), e.status_code
    except Exception as e:
        current_app.logger.error(f"Error loading entries for {group_id}: {e}")
        return jsonify({"status": "error", "message": describe_backend_error(e)}), 500

    return jsonify(
        {
            "status": "success",
            "entries": [EntryService.to_json(entry, tz) for entry in entries],
            "moods": MOODS,
        }
    )


@bp.route("/<string:group_id>/stream", methods=["GET"])
@login_required
def stream(group_id):
    """Push the group's full entry list as server-sent events on every change."""
    db = firestore.client()
    try:
        GroupService.require_approved_member(db, group_id, g.user["uid"])
    except AppError as e:
        return jsonify({"status": "error", "message": e.message}), e.status_code

    tz = _diary_timezone()
    feed = EntryService.watch_entries(db, group_id)
    current_app.logger.info(f"Live subscription opened for group {group_id}")

    def generate():
        seen_version = 0
        try:
            while True:
                version, entries = feed.wait_for_update(
                    seen_version, timeout=SSE_KEEPALIVE_SECONDS
                )
                if version == seen_version or entries is None:
                    yield ": keep-alive\n\n"
                    continue
                seen_version = version
                payload = [EntryService.to_json(entry, tz) for entry in entries]
                yield f"data: {json.dumps(payload)}\n\n"
        finally:
            feed.close()

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@bp.app_template_filter("entry_time")
def entry_time_filter(entry):
    """Format an entry's time of day in the diary timezone."""
    return EntryService.entry_time(entry).astimezone(_diary_timezone()).strftime("%H:%M")

"""Decorators for the auth blueprint."""

from functools import wraps

from flask import flash, g, redirect, session, url_for

from shareddiary.constants import SESSION_USER_ID


def login_required(f):
    """Redirect to the login page if the user is not logged in.

    Usage:
    @login_required
    def protected_view():
        ...
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if SESSION_USER_ID not in session or g.get("user") is None:
            flash("Please log in to continue.", "info")
            return redirect(url_for("auth.login"))
        return f(*args, **kwargs)

    return decorated_function

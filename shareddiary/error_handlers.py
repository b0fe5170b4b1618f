"""Application-wide error pages."""

from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_wtf.csrf import CSRFError
from google.api_core import exceptions as google_exceptions

from .errors import AppError, NotAuthenticatedError, NotFoundError
from .utils import describe_backend_error

error_handlers_bp = Blueprint("error_handlers", __name__)


@error_handlers_bp.app_errorhandler(NotAuthenticatedError)
def handle_not_authenticated_error(error):
    """Sends the user to the login page."""
    current_app.logger.warning(f"Not Authenticated: {error.message}")
    flash(error.message, "info")
    return redirect(url_for("auth.login"))


@error_handlers_bp.app_errorhandler(NotFoundError)
def handle_not_found_error(error):
    current_app.logger.warning(f"Not Found: {error.message}")
    return render_template("404.html", error=error.message), error.status_code


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Renders validation and permission failures that no view caught."""
    current_app.logger.warning(f"{type(error).__name__}: {error.message}")
    return render_template("error.html", error=error.message), error.status_code


@error_handlers_bp.app_errorhandler(google_exceptions.GoogleAPICallError)
def handle_backend_error(e):
    """Handles Firestore and Firebase API failures."""
    current_app.logger.error(f"Backend Error: {e}")
    status_code = e.code if isinstance(e.code, int) and e.code >= 400 else 500
    return render_template("error.html", error=describe_backend_error(e)), status_code


@error_handlers_bp.app_errorhandler(404)
def handle_404(e):
    return render_template("404.html"), 404


@error_handlers_bp.app_errorhandler(500)
def handle_500(e):
    current_app.logger.error(f"Internal Server Error: {e}")
    return render_template("500.html"), 500


@error_handlers_bp.app_errorhandler(CSRFError)
def handle_csrf_error(e):
    """A CSRF failure usually means the form outlived the session."""
    current_app.logger.warning(f"CSRF Error: {e.description}")
    flash("Your session may have expired. Please try your action again.", "warning")
    return redirect(request.referrer or url_for("group.view_groups"))

"""Routes for the auth blueprint."""

import json

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
    url_for,
)

from shareddiary.constants import SESSION_USER_ID
from shareddiary.errors import AppError
from shareddiary.utils import EmailError, describe_backend_error

from . import bp
from .forms import EmailForm, LoginForm, SignupForm
from .services import AuthService


@bp.route("/signup", methods=["GET", "POST"])
def signup():
    """Create an account and send the verification email."""
    if g.get("user"):
        return redirect(url_for("group.view_groups"))

    form = SignupForm()
    if form.validate_on_submit():
        db = firestore.client()
        try:
            AuthService.sign_up(
                db, form.name.data, form.email.data, form.password.data
            )
        except EmailError as e:
            current_app.logger.error(f"Verification email failed: {e}")
            flash(
                "Account created, but the verification email could not be sent. "
                "Use 'Resend verification email' on the login page.",
                "warning",
            )
            return redirect(url_for(".login"))
        except AppError as e:
            flash(e.message, "danger")
            return render_template("signup.html", form=form)
        except Exception as e:
            current_app.logger.error(f"Error during sign-up: {e}")
            flash(describe_backend_error(e), "danger")
            return render_template("signup.html", form=form)

        flash(
            "Sign-up successful! Please check your email to verify your account.",
            "success",
        )
        return redirect(url_for(".login"))

    return render_template("signup.html", form=form)


@bp.route("/login", methods=["GET", "POST"])
def login():
    """
    Renders the login page.
    The actual login process is handled by the Firebase client-side SDK,
    which posts the ID token to session_login.
    """
    if g.get("user"):
        return redirect(url_for("group.view_groups"))
    return render_template("login.html", form=LoginForm(), resend_form=EmailForm())


@bp.route("/session_login", methods=["POST"])
def session_login():
    """
    This endpoint is called from the client-side after a successful Firebase login.
    It receives the ID token, verifies it, and creates a server-side session.
    """
    payload = request.get_json(silent=True) or {}
    db = firestore.client()
    try:
        uid = AuthService.verify_session_token(db, payload.get("idToken"))
    except AppError as e:
        current_app.logger.warning(f"Session login refused: {e.message}")
        return jsonify({"status": "error", "message": e.message}), e.status_code
    except Exception as e:
        current_app.logger.error(f"Error during session login: {e}")
        return (
            jsonify({"status": "error", "message": describe_backend_error(e)}),
            500,
        )

    session.clear()
    session[SESSION_USER_ID] = uid
    current_app.logger.info(f"User {uid} logged in")
    return jsonify({"status": "success", "redirect": url_for("group.view_groups")})


@bp.route("/logout")
def logout():
    """
    The Firebase client-side SDK signs out in the browser.
    This route clears the server-side session, including the last opened group.
    """
    session.clear()
    flash("You have been logged out.", "success")
    return redirect(url_for("auth.login"))


@bp.route("/resend_verification", methods=["POST"])
def resend_verification():
    """Send another verification email."""
    form = EmailForm()
    if form.validate_on_submit():
        try:
            AuthService.resend_verification(form.email.data)
            flash("Verification email sent. Please check your inbox.", "success")
        except Exception as e:
            current_app.logger.warning(f"Resend verification failed: {e}")
            flash(describe_backend_error(e), "danger")
    else:
        flash("Enter a valid email address.", "danger")
    return redirect(url_for(".login"))


@bp.route("/reset_password", methods=["GET", "POST"])
def reset_password():
    """Send a password reset email."""
    form = EmailForm()
    if form.validate_on_submit():
        try:
            AuthService.send_password_reset(form.email.data)
        except Exception as e:
            current_app.logger.warning(f"Password reset failed: {e}")
            flash(describe_backend_error(e), "danger")
            return render_template("reset_password.html", form=form)
        flash("Password reset email sent. Please check your inbox.", "success")
        return redirect(url_for(".login"))
    return render_template("reset_password.html", form=form)


@bp.route("/firebase-config.js")
def firebase_config():
    """Serve the Firebase web config used by the client-side SDK."""
    api_key = current_app.config.get("FIREBASE_API_KEY")
    if not api_key:
        current_app.logger.error(
            "FIREBASE_API_KEY is not set. Frontend will not be able to connect to Firebase."
        )
        error_script = (
            'console.error("Firebase API key is missing. '
            'Please set the FIREBASE_API_KEY environment variable.");'
        )
        return Response(error_script, mimetype="application/javascript")

    config = {
        "apiKey": api_key,
        "authDomain": current_app.config.get("FIREBASE_AUTH_DOMAIN"),
        "projectId": current_app.config.get("FIREBASE_PROJECT_ID"),
        "appId": current_app.config.get("FIREBASE_APP_ID"),
    }
    js_config = f"const firebaseConfig = {json.dumps(config)};"
    return Response(js_config, mimetype="application/javascript")

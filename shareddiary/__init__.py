"""Shared Diary: a Flask app over Firebase Authentication and Firestore."""

import json
import os

import firebase_admin
from firebase_admin import credentials, firestore
from flask import Flask, current_app, g, redirect, session, url_for
from werkzeug.middleware.proxy_fix import ProxyFix

from .constants import GROUP_ID_MAX_ATTEMPTS, SESSION_USER_ID
from .extensions import csrf, mail
from .user.services import UserService

CREDENTIALS_FILE = os.path.join(
    os.path.dirname(os.path.dirname(__file__)), "firebase_credentials.json"
)


def _env_flag(name, default):
    return (os.environ.get(name) or default).lower() in ("true", "1", "t")


def _service_account_info(app):
    """Return (credential source, project id) for a service account, if one is set.

    FIREBASE_CREDENTIALS_JSON wins over a firebase_credentials.json file in the
    project root. Unparseable sources are logged and skipped.
    """
    raw = os.environ.get("FIREBASE_CREDENTIALS_JSON")
    if raw:
        try:
            info = json.loads(raw)
            return info, info.get("project_id")
        except json.JSONDecodeError as e:
            app.logger.error(f"Error parsing FIREBASE_CREDENTIALS_JSON: {e}")

    if os.path.exists(CREDENTIALS_FILE):
        try:
            with open(CREDENTIALS_FILE) as f:
                return CREDENTIALS_FILE, json.load(f).get("project_id")
        except json.JSONDecodeError as e:
            app.logger.error(f"Error reading {CREDENTIALS_FILE}: {e}")

    return None, None


def init_firebase(app):
    """Initialize the Firebase Admin SDK once per process."""
    if firebase_admin._apps:
        return

    source, project_id = _service_account_info(app)
    try:
        if source is not None:
            cred = credentials.Certificate(source)
        else:
            cred = credentials.ApplicationDefault()
    except ValueError as e:
        app.logger.error(f"Invalid Firebase credentials: {e}")
        return

    project_id = project_id or app.config.get("FIREBASE_PROJECT_ID")
    options = {"projectId": project_id} if project_id else {}
    firebase_admin.initialize_app(cred, options)
    app.logger.info(f"Firebase initialized for project {project_id or '(default)'}")


def create_app(test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_mapping(
        SECRET_KEY=os.environ.get("SECRET_KEY") or "dev",
        MAIL_SERVER=os.environ.get("MAIL_SERVER") or "smtp.gmail.com",
        MAIL_PORT=int(os.environ.get("MAIL_PORT") or 587),
        MAIL_USE_TLS=_env_flag("MAIL_USE_TLS", "true"),
        MAIL_USE_SSL=_env_flag("MAIL_USE_SSL", "false"),
        MAIL_USERNAME=os.environ.get("MAIL_USERNAME"),
        MAIL_PASSWORD=os.environ.get("MAIL_PASSWORD"),
        MAIL_DEFAULT_SENDER=os.environ.get("MAIL_DEFAULT_SENDER")
        or "noreply@shareddiary.app",
        FIREBASE_API_KEY=os.environ.get("FIREBASE_API_KEY"),
        FIREBASE_AUTH_DOMAIN=os.environ.get("FIREBASE_AUTH_DOMAIN"),
        FIREBASE_PROJECT_ID=os.environ.get("FIREBASE_PROJECT_ID"),
        FIREBASE_APP_ID=os.environ.get("FIREBASE_APP_ID"),
        GROUP_ID_MAX_ATTEMPTS=int(
            os.environ.get("GROUP_ID_MAX_ATTEMPTS") or GROUP_ID_MAX_ATTEMPTS
        ),
        DIARY_TIMEZONE=os.environ.get("DIARY_TIMEZONE") or "UTC",
    )
    if test_config:
        app.config.update(test_config)

    if not app.config.get("TESTING"):
        init_firebase(app)

    mail.init_app(app)
    csrf.init_app(app)

    from . import auth, diary, error_handlers, group

    for blueprint in (auth.bp, group.bp, diary.bp, error_handlers.error_handlers_bp):
        app.register_blueprint(blueprint)

    @app.route("/")
    def index():
        if g.get("user"):
            return redirect(url_for("group.view_groups"))
        return redirect(url_for("auth.login"))

    @app.route("/health")
    def health_check():
        """Perform a simple health check."""
        return "OK", 200

    @app.before_request
    def load_logged_in_user():
        """Put the signed-in user's profile on g, or drop a stale session."""
        g.user = None
        user_id = session.get(SESSION_USER_ID)
        if user_id is None:
            return

        try:
            user_data = UserService.get_user_by_id(firestore.client(), user_id)
        except Exception as e:
            current_app.logger.error(f"Error loading user {user_id}: {e}")
            session.clear()
            return

        if user_data is None:
            current_app.logger.warning(f"User {user_id} has no profile, logging out")
            session.clear()
            return
        user_data["uid"] = user_id
        g.user = user_data

    @app.context_processor
    def inject_version():
        return {"app_version": os.environ.get("APP_VERSION", "dev")}

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app

"""The diary blueprint."""

from flask import Blueprint

bp = Blueprint("diary", __name__, url_prefix="/diary", template_folder="templates")

from . import routes  # noqa: E402

__all__ = ["routes"]

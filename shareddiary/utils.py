"""Utility functions for the application."""

import smtplib

from flask import current_app, render_template
from flask_mail import Message
from google.api_core import exceptions as google_exceptions

from .constants import SMTP_AUTH_ERROR_CODE
from .errors import AppError
from .extensions import mail


class EmailError(Exception):
    """Base class for email errors."""

    pass


def send_email(to, subject, template, **kwargs):
    """Send an email to a recipient.

    Raises:
        EmailError: If sending the email fails.
    """
    msg = Message(
        subject,
        recipients=[to],
        html=render_template(template, **kwargs),
        sender=current_app.config["MAIL_DEFAULT_SENDER"],
    )
    try:
        mail.send(msg)
    except smtplib.SMTPAuthenticationError as e:
        if e.smtp_code == SMTP_AUTH_ERROR_CODE:
            raise EmailError(
                "Authentication failed. The mail provider requires an App Password. "
                "Please verify your MAIL_USERNAME and MAIL_PASSWORD settings."
            ) from e
        raise EmailError(f"SMTP Authentication failed: {e}") from e
    except Exception as e:
        raise EmailError(f"Failed to send email: {e}") from e


def describe_backend_error(error):
    """Turn an exception raised by a backend call into a message for the user."""
    if isinstance(error, AppError):
        return error.message
    if isinstance(error, google_exceptions.PermissionDenied):
        return "Permission denied. Firestore security rules blocked this action."
    if isinstance(error, google_exceptions.NotFound):
        return "The document you're trying to update doesn't exist."
    if isinstance(
        error, (google_exceptions.ServiceUnavailable, google_exceptions.DeadlineExceeded)
    ):
        return "Network error. Please check your connection."
    return str(error) or "An unknown error occurred."

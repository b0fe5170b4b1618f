"""Service layer for Firebase Authentication."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from firebase_admin import auth

from shareddiary.constants import ANONYMOUS_NAME, UNKNOWN_EMAIL
from shareddiary.errors import (
    DuplicateResourceError,
    NotAuthenticatedError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from shareddiary.user.services import UserService
from shareddiary.utils import send_email

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client


class AuthService:
    """Service class for sign-up, sign-in and account emails."""

    @staticmethod
    def sign_up(db: Client, name: str, email: str, password: str) -> str:
        """Create the auth account and profile, then send the verification email.

        Returns the new user's uid. The account exists even if the email
        could not be sent, so callers should treat EmailError as a warning.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Enter your name.")
        try:
            user_record = auth.create_user(
                email=email,
                password=password,
                display_name=name,
                email_verified=False,
            )
        except auth.EmailAlreadyExistsError as e:
            raise DuplicateResourceError("Email address is already registered.") from e

        UserService.create_profile(db, user_record.uid, name, email)

        verification_link = auth.generate_email_verification_link(email)
        send_email(
            to=email,
            subject="Verify Your Email",
            template="email/verify_email.html",
            name=name,
            verification_link=verification_link,
        )
        return user_record.uid

    @staticmethod
    def verify_session_token(db: Client, id_token: str | None) -> str:
        """Verify a client ID token and return the uid it belongs to.

        Unverified email addresses are refused. A verified account without a
        profile document gets one built from the token's claims.
        """
        if not id_token:
            raise NotAuthenticatedError("Missing ID token.")
        try:
            decoded_token: dict[str, Any] = auth.verify_id_token(id_token)
        except (auth.InvalidIdTokenError, ValueError) as e:
            raise NotAuthenticatedError("Invalid token.") from e

        if not decoded_token.get("email_verified"):
            raise PermissionDeniedError(
                "Please verify your email before logging in. "
                "Check your inbox for the verification link."
            )

        uid = decoded_token["uid"]
        if UserService.get_user_by_id(db, uid) is None:
            UserService.create_profile(
                db,
                uid,
                decoded_token.get("name") or ANONYMOUS_NAME,
                decoded_token.get("email") or UNKNOWN_EMAIL,
            )
        return uid

    @staticmethod
    def resend_verification(email: str) -> None:
        """Send a fresh verification link to an unverified account."""
        try:
            user_record = auth.get_user_by_email(email)
        except auth.UserNotFoundError as e:
            raise NotFoundError("No account found for that email address.") from e
        if user_record.email_verified:
            raise ValidationError("This email address is already verified.")

        verification_link = auth.generate_email_verification_link(email)
        send_email(
            to=email,
            subject="Verify Your Email",
            template="email/verify_email.html",
            name=user_record.display_name or ANONYMOUS_NAME,
            verification_link=verification_link,
        )

    @staticmethod
    def send_password_reset(email: str) -> None:
        """Email a password reset link."""
        try:
            reset_link = auth.generate_password_reset_link(email)
        except auth.UserNotFoundError as e:
            raise NotFoundError("No account found for that email address.") from e
        send_email(
            to=email,
            subject="Reset Your Password",
            template="email/reset_password.html",
            reset_link=reset_link,
        )

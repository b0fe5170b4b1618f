import unittest
from unittest.mock import MagicMock, patch

from firebase_admin import auth

from shareddiary.utils import EmailError
from tests.helpers import BaseTestCase

# Mock user payloads
MOCK_USER_ID = "user1"
MOCK_PASSWORD = "Password123"  # nosec
VERIFIED_TOKEN = {
    "uid": MOCK_USER_ID,
    "email": "user1@example.com",
    "email_verified": True,
}


class AuthFirebaseTestCase(BaseTestCase):
    def setUp(self):
        """Set up a test client and patch Firebase Authentication."""
        super().setUp()
        patchers = {
            "create_user": patch("firebase_admin.auth.create_user"),
            "verify_id_token": patch("firebase_admin.auth.verify_id_token"),
            "get_user_by_email": patch("firebase_admin.auth.get_user_by_email"),
            "verification_link": patch(
                "firebase_admin.auth.generate_email_verification_link",
                return_value="https://example.com/verify",
            ),
            "reset_link": patch(
                "firebase_admin.auth.generate_password_reset_link",
                return_value="https://example.com/reset",
            ),
            "send_email": patch("shareddiary.auth.services.send_email"),
        }
        self.auth_mocks = {name: p.start() for name, p in patchers.items()}
        for p in patchers.values():
            self.addCleanup(p.stop)

    def _signup(self, **overrides):
        data = {
            "name": "New User",
            "email": "new@example.com",
            "password": MOCK_PASSWORD,
            "confirm_password": MOCK_PASSWORD,
        }
        data.update(overrides)
        return self.client.post("/auth/signup", data=data, follow_redirects=True)

    def test_login_page_loads(self):
        response = self.client.get("/auth/login")
        self.assertEqual(response.status_code, 200)
        self.assertIn(b"Log in", response.data)
        self.assertIn(b"Resend verification email", response.data)

    def test_login_page_redirects_when_logged_in(self):
        self.create_user(MOCK_USER_ID)
        self.login(MOCK_USER_ID)
        response = self.client.get("/auth/login")
        self.assertEqual(response.status_code, 302)
        self.assertIn("/group/", response.location)

    def test_successful_signup(self):
        """Test sign-up with valid data."""
        self.auth_mocks["create_user"].return_value = MagicMock(uid="new_user_uid")

        response = self._signup()

        self.assertEqual(response.status_code, 200)
        self.assertIn(b"Sign-up successful!", response.data)
        self.auth_mocks["create_user"].assert_called_once_with(
            email="new@example.com",
            password=MOCK_PASSWORD,
            display_name="New User",
            email_verified=False,
        )
        profile = self.get_user("new_user_uid")
        self.assertEqual(profile["name"], "New User")
        self.assertEqual(profile["email"], "new@example.com")
        self.assertEqual(profile["groupIds"], [])
        send_kwargs = self.auth_mocks["send_email"].call_args.kwargs
        self.assertEqual(send_kwargs["to"], "new@example.com")
        self.assertEqual(send_kwargs["verification_link"], "https://example.com/verify")

    def test_signup_password_mismatch(self):
        response = self._signup(confirm_password="Different123")
        self.assertIn(b"Passwords must match.", response.data)
        self.auth_mocks["create_user"].assert_not_called()

    def test_signup_duplicate_email(self):
        self.auth_mocks["create_user"].side_effect = auth.EmailAlreadyExistsError(
            "exists", None, None
        )

        response = self._signup()

        self.assertIn(b"Email address is already registered.", response.data)
        self.auth_mocks["send_email"].assert_not_called()

    def test_signup_email_failure_keeps_account(self):
        self.auth_mocks["create_user"].return_value = MagicMock(uid="new_user_uid")
        self.auth_mocks["send_email"].side_effect = EmailError("SMTP down")

        response = self._signup()

        self.assertIn(b"verification email could not be sent", response.data)
        self.assertIsNotNone(self.get_user("new_user_uid"))

    def test_session_login(self):
        self.create_user(MOCK_USER_ID)
        self.auth_mocks["verify_id_token"].return_value = VERIFIED_TOKEN

        response = self.client.post(
            "/auth/session_login", json={"idToken": "good-token"}
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["status"], "success")
        with self.client.session_transaction() as sess:
            self.assertEqual(sess["user_id"], MOCK_USER_ID)

    def test_session_login_rejects_unverified_email(self):
        self.create_user(MOCK_USER_ID)
        self.auth_mocks["verify_id_token"].return_value = {
            **VERIFIED_TOKEN,
            "email_verified": False,
        }

        response = self.client.post(
            "/auth/session_login", json={"idToken": "good-token"}
        )

        self.assertEqual(response.status_code, 403)
        self.assertIn("verify your email", response.get_json()["message"])
        with self.client.session_transaction() as sess:
            self.assertNotIn("user_id", sess)

    def test_session_login_invalid_token(self):
        self.auth_mocks["verify_id_token"].side_effect = auth.InvalidIdTokenError(
            "bad token"
        )

        response = self.client.post("/auth/session_login", json={"idToken": "bad"})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()["status"], "error")

    def test_session_login_missing_token(self):
        response = self.client.post("/auth/session_login", json={})
        self.assertEqual(response.status_code, 401)
        self.auth_mocks["verify_id_token"].assert_not_called()

    def test_session_login_creates_missing_profile(self):
        self.auth_mocks["verify_id_token"].return_value = {
            **VERIFIED_TOKEN,
            "name": "Token Name",
        }

        response = self.client.post(
            "/auth/session_login", json={"idToken": "good-token"}
        )

        self.assertEqual(response.status_code, 200)
        profile = self.get_user(MOCK_USER_ID)
        self.assertEqual(profile["name"], "Token Name")
        self.assertEqual(profile["groupIds"], [])

    def test_logout_clears_session(self):
        self.create_user(MOCK_USER_ID)
        self.login(MOCK_USER_ID)
        with self.client.session_transaction() as sess:
            sess["last_group_id"] = "DG-ABC123"

        response = self.client.get("/auth/logout", follow_redirects=True)

        self.assertIn(b"You have been logged out.", response.data)
        with self.client.session_transaction() as sess:
            self.assertNotIn("user_id", sess)
            self.assertNotIn("last_group_id", sess)

    def test_resend_verification(self):
        self.auth_mocks["get_user_by_email"].return_value = MagicMock(
            email_verified=False, display_name="New User"
        )

        response = self.client.post(
            "/auth/resend_verification",
            data={"email": "new@example.com"},
            follow_redirects=True,
        )

        self.assertIn(b"Verification email sent.", response.data)
        self.auth_mocks["send_email"].assert_called_once()

    def test_resend_verification_already_verified(self):
        self.auth_mocks["get_user_by_email"].return_value = MagicMock(
            email_verified=True
        )

        response = self.client.post(
            "/auth/resend_verification",
            data={"email": "new@example.com"},
            follow_redirects=True,
        )

        self.assertIn(b"already verified", response.data)
        self.auth_mocks["send_email"].assert_not_called()

    def test_reset_password(self):
        response = self.client.post(
            "/auth/reset_password",
            data={"email": "user1@example.com"},
            follow_redirects=True,
        )

        self.assertIn(b"Password reset email sent.", response.data)
        send_kwargs = self.auth_mocks["send_email"].call_args.kwargs
        self.assertEqual(send_kwargs["reset_link"], "https://example.com/reset")

    def test_reset_password_unknown_email(self):
        self.auth_mocks["reset_link"].side_effect = auth.UserNotFoundError("nope")

        response = self.client.post(
            "/auth/reset_password",
            data={"email": "ghost@example.com"},
            follow_redirects=True,
        )

        self.assertIn(b"No account found for that email address.", response.data)

    def test_firebase_config(self):
        self.app.config["FIREBASE_API_KEY"] = "api-key-123"
        self.app.config["FIREBASE_PROJECT_ID"] = "diary-test"

        response = self.client.get("/auth/firebase-config.js")

        self.assertEqual(response.mimetype, "application/javascript")
        self.assertIn(b'"apiKey": "api-key-123"', response.data)
        self.assertIn(b'"projectId": "diary-test"', response.data)

    def test_firebase_config_missing_key(self):
        self.app.config["FIREBASE_API_KEY"] = None
        response = self.client.get("/auth/firebase-config.js")
        self.assertIn(b"console.error", response.data)


if __name__ == "__main__":
    unittest.main()

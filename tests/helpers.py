import unittest
from unittest.mock import patch

from shareddiary import create_app
from shareddiary.group.services import GroupService
from tests.mock_utils import (
    FIRESTORE_PATCH_TARGETS,
    MockFirestoreBuilder,
    build_mock_db,
)


class BaseTestCase(unittest.TestCase):
    """Flask test client over a mockfirestore database."""

    def setUp(self):
        self.mock_db = build_mock_db()
        self.mock_firestore_module = MockFirestoreBuilder.firestore_module(self.mock_db)

        patchers = {"init_app": patch("firebase_admin.initialize_app")}
        for target in FIRESTORE_PATCH_TARGETS:
            patchers[target] = patch(target, new=self.mock_firestore_module)

        self.mocks = {name: p.start() for name, p in patchers.items()}
        for p in patchers.values():
            self.addCleanup(p.stop)

        self.app = create_app(
            {"TESTING": True, "WTF_CSRF_ENABLED": False, "SERVER_NAME": "localhost"}
        )
        self.client = self.app.test_client()
        self.app_context = self.app.app_context()
        self.app_context.push()

    def tearDown(self):
        self.app_context.pop()

    def create_user(self, uid, name="Test User", email=None, **extra):
        """Creates a user profile document and returns its data."""
        data = {
            "name": name,
            "email": email or f"{uid}@example.com",
            "groupIds": [],
            **extra,
        }
        self.mock_db.collection("user").document(uid).set(data)
        return data

    def login(self, uid):
        """Puts the uid into the session, as session_login would."""
        with self.client.session_transaction() as sess:
            sess["user_id"] = uid

    def create_group(self, admin_uid, name="Family", members=()):
        """Creates a group with ``admin_uid`` as admin.

        ``members`` is a list of (uid, approved) pairs that join afterwards.
        """
        group_id = GroupService.create_group(self.mock_db, admin_uid, name)
        for uid, approved in members:
            GroupService.join_group(self.mock_db, group_id, uid)
            if approved:
                GroupService.approve_member(self.mock_db, group_id, admin_uid, uid)
        return group_id

    def get_group(self, group_id):
        return self.mock_db.collection("groups").document(group_id).get().to_dict()

    def get_user(self, uid):
        return self.mock_db.collection("user").document(uid).get().to_dict()

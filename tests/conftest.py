"""Shared test setup: mockfirestore is patched once for the whole session."""

from tests.mock_utils import patch_mockfirestore

patch_mockfirestore()

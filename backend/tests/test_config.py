import logging
import os
import unittest
from unittest import mock

from pydantic import ValidationError

from scheduler.core.config import MAX_BATCH_OPERATIONS, Settings, get_settings
from scheduler.core.logging_config import setup_logging


class TestSettings(unittest.TestCase):
    def test_defaults(self) -> None:
        config = Settings()
        self.assertEqual(config.INVITE_CODE_MAX_ATTEMPTS, 6)
        self.assertEqual(config.DELETE_BATCH_SIZE, MAX_BATCH_OPERATIONS)
        self.assertEqual(config.TOP_CANDIDATE_LIMIT, 5)
        self.assertTrue(config.TOP_CANDIDATES_EXCLUDE_UNANSWERED)

    def test_environment_overrides(self) -> None:
        with mock.patch.dict(os.environ, {"INVITE_CODE_MAX_ATTEMPTS": "3", "STORE_BACKEND": "none"}):
            config = Settings()
        self.assertEqual(config.INVITE_CODE_MAX_ATTEMPTS, 3)
        self.assertEqual(config.STORE_BACKEND, "none")

    def test_admin_emails_accept_comma_separated_text(self) -> None:
        config = Settings(ADMIN_EMAILS=" Ada@Example.com, bob@example.com ,")
        self.assertEqual(config.ADMIN_EMAILS, ["ada@example.com", "bob@example.com"])

    def test_invalid_values(self) -> None:
        with self.assertRaises(ValidationError):
            Settings(DELETE_BATCH_SIZE=MAX_BATCH_OPERATIONS + 1)
        with self.assertRaises(ValidationError):
            Settings(DELETE_BATCH_SIZE=0)
        with self.assertRaises(ValidationError):
            Settings(STORE_BACKEND="firestore")

    def test_settings_are_cached(self) -> None:
        self.assertIs(get_settings(), get_settings())


class TestLogging(unittest.TestCase):
    def setUp(self) -> None:
        root = logging.getLogger()
        self._saved = (root.level, list(root.handlers))

    def tearDown(self) -> None:
        root = logging.getLogger()
        root.setLevel(self._saved[0])
        root.handlers[:] = self._saved[1]

    def test_setup_logging_installs_one_handler(self) -> None:
        setup_logging("debug")
        setup_logging("debug")
        root = logging.getLogger()
        self.assertEqual(root.level, logging.DEBUG)
        self.assertEqual(len(root.handlers), 1)

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging("chatty")
        self.assertEqual(logging.getLogger().level, logging.INFO)


if __name__ == "__main__":
    unittest.main(verbosity=2)

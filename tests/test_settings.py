import os
import tempfile
import unittest
from unittest.mock import patch

from src.config.settings import REQUIRED_SETTINGS, load_settings
from src.core.errors import ConfigurationError

VALID_ENV = {
    "BACKEND_URL": "https://auth.jeuxboard.io",
    "BACKEND_ANON_KEY": "anon",
    "SECRET_KEY": "signing-key",
}


class TestSettings(unittest.TestCase):
    """Startup configuration must fail fast and name what is missing."""

    def setUp(self) -> None:
        # Run outside the repository so a local secrets/.env cannot leak in
        self._cwd = os.getcwd()
        self._tmp = tempfile.TemporaryDirectory()
        os.chdir(self._tmp.name)

    def tearDown(self) -> None:
        os.chdir(self._cwd)
        self._tmp.cleanup()

    def test_missing_required_settings_are_all_named(self) -> None:
        with patch.dict(os.environ, {}, clear=True), self.assertRaises(ConfigurationError) as ctx:
            load_settings()

        for name in REQUIRED_SETTINGS:
            self.assertIn(name, ctx.exception.message)

    def test_blank_value_is_rejected(self) -> None:
        env = {**VALID_ENV, "SECRET_KEY": "   "}
        with patch.dict(os.environ, env), self.assertRaises(ConfigurationError) as ctx:
            load_settings()

        self.assertIn("SECRET_KEY", ctx.exception.message)
        self.assertNotIn("BACKEND_URL", ctx.exception.message)

    def test_valid_environment(self) -> None:
        with patch.dict(os.environ, {**VALID_ENV, "SESSION_MAX_AGE": "60", "DEBUG": "true"}):
            loaded = load_settings()

        self.assertEqual(loaded.BACKEND_URL, "https://auth.jeuxboard.io")
        self.assertEqual(loaded.SESSION_MAX_AGE, 60)
        self.assertTrue(loaded.DEBUG)


if __name__ == "__main__":
    unittest.main()

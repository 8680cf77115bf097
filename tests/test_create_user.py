"""create_user CLI against an in-memory database."""

import io
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest.mock import patch

from backoffice.core.security import verify_password
from backoffice.models import User
from backoffice.scripts import create_user
from tests.support import make_session_factory


class TestCreateUserCli(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        patcher = patch.object(create_user, "SessionLocal", self.session_factory)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _run(self, *argv: str) -> tuple[int, str, str]:
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = create_user.main(list(argv))
        return code, out.getvalue(), err.getvalue()

    def test_creates_admin(self) -> None:
        code, out, _ = self._run(" Admin@Bakery.Local ", "password123", "Head Baker", "admin")
        self.assertEqual(code, 0)
        self.assertIn("ADMIN", out)
        db = self.session_factory()
        try:
            user = db.query(User).filter(User.email == "admin@bakery.local").one()
            self.assertEqual(user.role, "ADMIN")
            self.assertTrue(verify_password("password123", user.password_hash))
        finally:
            db.close()

    def test_duplicate_and_invalid_input(self) -> None:
        self.assertEqual(self._run("a@bakery.local", "password123", "A")[0], 0)
        code, _, err = self._run("a@bakery.local", "password123", "A")
        self.assertEqual(code, 1)
        self.assertIn("already exists", err)
        self.assertEqual(self._run("b@bakery.local", "short", "B")[0], 1)
        self.assertEqual(self._run("not-an-email", "password123", "C")[0], 1)


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import unittest

import jwt

from fieldreport.backend import AuthSession
from tests.support import make_token


class AuthSessionTests(unittest.TestCase):
    def test_reads_user_id_from_token_subject(self) -> None:
        auth = AuthSession(make_token("user-42"))

        self.assertEqual(auth.current_user_id(), "user-42")

    def test_signed_out_session_has_no_user(self) -> None:
        auth = AuthSession(make_token())
        auth.sign_out()

        self.assertIsNone(auth.access_token)
        self.assertIsNone(auth.current_user_id())

    def test_sign_in_replaces_token(self) -> None:
        auth = AuthSession()
        self.assertIsNone(auth.current_user_id())

        auth.sign_in(make_token("user-7"))

        self.assertEqual(auth.current_user_id(), "user-7")

    def test_token_without_subject_has_no_user(self) -> None:
        auth = AuthSession(jwt.encode({"role": "anon"}, "secret", algorithm="HS256"))

        self.assertIsNone(auth.current_user_id())

    def test_unreadable_token_is_logged_and_ignored(self) -> None:
        auth = AuthSession("not-a-jwt")

        with self.assertLogs("fieldreport.backend.auth", level="WARNING"):
            self.assertIsNone(auth.current_user_id())


if __name__ == "__main__":
    unittest.main()

"""
Tests for TokenVerifier.
"""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import jwt

from videarn.services.auth import TokenVerifier

SECRET = "unit-test-secret-that-is-at-least-32-characters"


class TestTokenVerifier:
    """Tests for issuing and verifying auth provider tokens."""

    def test_round_trip(self):
        verifier = TokenVerifier(jwt_secret=SECRET)
        account_id = uuid4()

        identity = verifier.verify_token(verifier.issue_token(account_id, email="a@example.com"))

        assert identity is not None
        assert identity.account_id == account_id
        assert identity.email == "a@example.com"

    def test_email_optional(self):
        verifier = TokenVerifier(jwt_secret=SECRET)

        identity = verifier.verify_token(verifier.issue_token(uuid4()))

        assert identity is not None
        assert identity.email is None

    def test_expired_token(self):
        verifier = TokenVerifier(jwt_secret=SECRET)
        token = verifier.issue_token(uuid4(), expires_in=timedelta(seconds=-5))

        assert verifier.verify_token(token) is None

    def test_wrong_secret(self):
        token = TokenVerifier(jwt_secret="another-secret-of-sufficient-length!!").issue_token(
            uuid4()
        )

        assert TokenVerifier(jwt_secret=SECRET).verify_token(token) is None

    def test_garbage_token(self):
        assert TokenVerifier(jwt_secret=SECRET).verify_token("not.a.jwt") is None

    def test_missing_secret_rejects_everything(self):
        token = TokenVerifier(jwt_secret=SECRET).issue_token(uuid4())

        assert TokenVerifier(jwt_secret="").verify_token(token) is None

    def test_subject_must_be_uuid(self):
        now = datetime.now(UTC)
        token = jwt.encode(
            {"sub": "user-42", "iat": now, "exp": now + timedelta(minutes=5)},
            SECRET,
            algorithm="HS256",
        )

        assert TokenVerifier(jwt_secret=SECRET).verify_token(token) is None

    def test_missing_expiry_rejected(self):
        token = jwt.encode({"sub": str(uuid4())}, SECRET, algorithm="HS256")

        assert TokenVerifier(jwt_secret=SECRET).verify_token(token) is None

    def test_audience_enforced_when_configured(self):
        issuer = TokenVerifier(jwt_secret=SECRET, audience="other-app")
        verifier = TokenVerifier(jwt_secret=SECRET, audience="videarn")

        assert verifier.verify_token(issuer.issue_token(uuid4())) is None
        assert verifier.verify_token(verifier.issue_token(uuid4())) is not None

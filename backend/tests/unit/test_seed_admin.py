"""Tests for the initial admin seed script."""

import pytest

from kakunin.auth.jwt import decode_token
from kakunin.models import User
from scripts.seed_admin import create_admin


class TestCreateAdmin:

    def test_creates_admin_and_token(self, db_session):
        user, token = create_admin(db_session, "Root@Example.com", "Root")

        assert user.role == "ADMIN"
        assert user.email == "root@example.com"
        assert db_session.query(User).count() == 1

        claims = decode_token(token)
        assert claims["sub"] == str(user.id)
        assert claims["role"] == "ADMIN"

    def test_duplicate_email_rejected(self, db_session, admin_user):
        with pytest.raises(ValueError, match="already exists"):
            create_admin(db_session, admin_user.email, "Again")

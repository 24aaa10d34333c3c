"""Tests for PasswordHasher."""

import pytest

from auth.passwords import PasswordHasher


@pytest.fixture(scope="module")
def hasher():
    return PasswordHasher()


class TestPasswordHasher:

    def test_hash_is_not_plaintext(self, hasher):
        password_hash = hasher.hash("secret1")

        assert password_hash != "secret1"
        assert password_hash.startswith("$2")

    def test_verify(self, hasher):
        password_hash = hasher.hash("secret1")

        assert hasher.verify("secret1", password_hash) is True
        assert hasher.verify("wrong", password_hash) is False

    def test_salted(self, hasher):
        assert hasher.hash("secret1") != hasher.hash("secret1")

    def test_unrecognised_hash_fails_closed(self, hasher):
        assert hasher.verify("secret1", "not-a-hash") is False

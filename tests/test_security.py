"""Tests for utils.security."""

from utils.security import generate_jti, hash_password, tokens_equal, verify_password


class TestPasswords:

    def test_verify_correct_password(self):
        stored = hash_password("correct-pw")
        assert stored != "correct-pw"
        assert verify_password("correct-pw", stored) is True

    def test_verify_wrong_password(self):
        stored = hash_password("correct-pw")
        assert verify_password("wrong-pw", stored) is False

    def test_hash_is_salted(self):
        assert hash_password("same-secret") != hash_password("same-secret")

    def test_malformed_stored_hash(self):
        assert verify_password("correct-pw", "not-an-argon2-hash") is False

    def test_empty_inputs(self):
        assert verify_password("", hash_password("correct-pw")) is False
        assert verify_password("correct-pw", None) is False


class TestTokensEqual:

    def test_equal(self):
        assert tokens_equal("abc.def.ghi", "abc.def.ghi")

    def test_different(self):
        assert not tokens_equal("abc.def.ghi", "abc.def.ghj")

    def test_none_never_matches(self):
        assert not tokens_equal(None, None)
        assert not tokens_equal("abc", None)
        assert not tokens_equal(None, "abc")


def test_generate_jti_unique():
    assert generate_jti() != generate_jti()

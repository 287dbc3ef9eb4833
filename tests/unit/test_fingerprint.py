"""
Unit tests for jobref/common/fingerprint.py
"""

from jobref.common.fingerprint import (
    DESCRIPTION_PREFIX_LENGTH,
    credential_digest,
    description_fingerprint,
    fingerprint,
    fnv1a_32,
    rolling_hash,
)


class TestRollingHash:
    def test_empty_string_is_zero(self):
        assert rolling_hash("") == 0

    def test_known_values(self):
        # h = h * 31 + ord(c)
        assert rolling_hash("a") == 97
        assert rolling_hash("ab") == 97 * 31 + 98

    def test_wraps_to_signed_32_bits(self):
        value = rolling_hash("x" * 500)
        assert -(2 ** 31) <= value < 2 ** 31

    def test_fnv1a_known_value(self):
        assert fnv1a_32("") == 0x811C9DC5


class TestFingerprint:
    def test_stable_across_calls(self):
        assert fingerprint("Backend Engineer") == fingerprint("Backend Engineer")

    def test_differs_for_different_text(self):
        assert fingerprint("sk-key-one") != fingerprint("sk-key-two")

    def test_none_treated_as_empty(self):
        assert fingerprint(None) == fingerprint("")

    def test_description_uses_prefix_only(self):
        prefix = "d" * DESCRIPTION_PREFIX_LENGTH
        assert description_fingerprint(prefix + "tail one") == description_fingerprint(prefix + "tail two")

    def test_description_change_inside_prefix_changes_fingerprint(self):
        assert description_fingerprint("Build APIs") != description_fingerprint("Build UIs")


class TestCredentialDigest:
    def test_is_sha256_hex(self):
        digest = credential_digest("sk-secret")
        assert len(digest) == 64
        assert "sk-secret" not in digest

    def test_separates_keys_that_share_a_rolling_hash(self):
        assert rolling_hash("sk-Aa") == rolling_hash("sk-BB")
        assert credential_digest("sk-Aa") != credential_digest("sk-BB")

"""
Unit tests for policy fingerprints and identities.
"""

import dataclasses
import hashlib

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_policy.app.rules.fingerprint import (
    FINGERPRINT_SIZE, FingerprintAlgorithm, bounded_policy_fingerprint,
    encode_text_policy, encode_value, fnv1a64, policy_fingerprint
)
from service_policy.app.rules.identity import IDENTITY_MASK, identity_of
from service_policy.app.rules.models import ConditionalRule, PolicyRules, TextPolicyRules


@pytest.fixture
def policy():
    """Text policy touching every field."""
    return TextPolicyRules(
        max_per_payment=1000,
        max_per_day=5000,
        max_per_week=20000,
        allowed_hours_start=9,
        allowed_hours_end=17,
        allowed_weekdays=(1, 2, 3, 4, 5),
        allowed_vendors=("Acme", "Globex"),
        category_limits={"software": 500, "travel": 2000},
        conditional_rules=(ConditionalRule(1, 800, 3),),
        blocked_keywords=("casino",),
        min_ai_confidence=90,
    )


class TestFnv1a64:
    """Test cases for the FNV-1a hash."""

    def test_known_vectors(self):
        """Published FNV-1a 64-bit test vectors."""
        assert fnv1a64(b"") == 0xcbf29ce484222325
        assert fnv1a64(b"a") == 0xaf63dc4c8601ec8c
        assert fnv1a64(b"foobar") == 0x85944171f73967e8


class TestEncodeValue:
    """Test cases for the canonical encoding."""

    def test_scalars(self):
        """Integers and strings carry a tag and length."""
        assert encode_value(42) == b"I\x0242"
        assert encode_value("ab") == b"S\x02ab"
        assert encode_value(True) == encode_value(1)

    def test_map_keys_are_sorted(self):
        """Insertion order does not affect map encoding."""
        assert encode_value({"b": 1, "a": 2}) == encode_value({"a": 2, "b": 1})

    def test_list_boundaries_are_unambiguous(self):
        """Splitting strings differently changes the encoding."""
        assert encode_value(["ab", "c"]) != encode_value(["a", "bc"])

    def test_unsupported_type(self):
        """Floats are rejected."""
        with pytest.raises(TypeError):
            encode_value(1.5)


class TestPolicyFingerprint:
    """Test cases for policy fingerprints."""

    def test_deterministic(self, policy):
        """Equal policies give equal fingerprints."""
        assert policy_fingerprint(policy) == policy_fingerprint(dataclasses.replace(policy))

    def test_fnv_layout(self, policy):
        """The FNV hash occupies the last 8 bytes of a 32-byte field."""
        fingerprint = policy_fingerprint(policy)

        assert len(fingerprint) == FINGERPRINT_SIZE
        assert fingerprint[:24] == bytes(24)
        assert int.from_bytes(fingerprint[24:], "big") == fnv1a64(encode_text_policy(policy))

    def test_blake2b(self, policy):
        """BLAKE2b digests the same canonical bytes."""
        fingerprint = policy_fingerprint(policy, FingerprintAlgorithm.BLAKE2B_256)

        assert len(fingerprint) == FINGERPRINT_SIZE
        assert fingerprint == hashlib.blake2b(encode_text_policy(policy), digest_size=32).digest()
        assert fingerprint != policy_fingerprint(policy)

    @pytest.mark.parametrize("changes", [
        {"max_per_payment": 1001},
        {"max_per_day": 5001},
        {"max_per_week": 20001},
        {"allowed_hours_start": 8},
        {"allowed_hours_end": 18},
        {"allowed_weekdays": (1, 2, 3, 4)},
        {"allowed_vendors": ("Acme",)},
        {"allowed_vendors": ("Globex", "Acme")},
        {"category_limits": {"software": 501, "travel": 2000}},
        {"category_limits": {"software": 500}},
        {"conditional_rules": (ConditionalRule(1, 800, 2),)},
        {"conditional_rules": ()},
        {"blocked_keywords": ()},
        {"min_ai_confidence": 91},
    ])
    def test_every_field_is_covered(self, policy, changes):
        """Changing any field changes the fingerprint."""
        changed = dataclasses.replace(policy, **changes)

        assert policy_fingerprint(changed) != policy_fingerprint(policy)

    def test_bounded_fingerprint_ignores_dropped_slots(self):
        """Vendors beyond capacity do not contribute."""
        overflowing = PolicyRules.create(1000, 5000, 20000, vendors=list(range(1, 13)))
        truncated = PolicyRules.create(1000, 5000, 20000, vendors=list(range(1, 11)))

        assert bounded_policy_fingerprint(overflowing) == bounded_policy_fingerprint(truncated)

    def test_bounded_fingerprint_covers_rules(self):
        """Conditional rules contribute to the bounded fingerprint."""
        plain = PolicyRules.create(1000, 5000, 20000)
        with_rule = PolicyRules.create(1000, 5000, 20000, conditional_rules=[ConditionalRule(1, 10, 2)])

        assert bounded_policy_fingerprint(plain) != bounded_policy_fingerprint(with_rule)


class TestIdentity:
    """Test cases for identity_of."""

    def test_empty_string(self):
        """Identity of the empty string is pinned."""
        assert identity_of("") == 0x10c44298fc1c14

    def test_range_and_stability(self):
        """Identities fit in 53 bits and depend only on the text."""
        for text in ["Acme", "software", "ünïcode", "x" * 1000]:
            assert 0 <= identity_of(text) <= IDENTITY_MASK
            assert identity_of(text) == identity_of(text)

    def test_distinct_texts(self):
        """Case matters."""
        assert identity_of("Acme") != identity_of("acme")

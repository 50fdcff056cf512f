"""
Policy fingerprints.

A fingerprint binds a decision to the exact policy configuration that was
evaluated. Policies are first serialised with a canonical, type-tagged
encoding and then digested:

- ``fnv1a64`` (default): 64-bit FNV-1a. Stable and fast, but not collision
  resistant and not suitable as a tamper-evident commitment. The 32-byte
  field holds 24 zero bytes followed by the big-endian hash.
- ``blake2b_256``: BLAKE2b with a 32-byte digest, for callers that need the
  fingerprint to act as a commitment.
"""

from enum import Enum
from typing import Any, Union
import hashlib

from .models import PolicyRules, TextPolicyRules

FINGERPRINT_SIZE = 32

FNV64_OFFSET = 0xcbf29ce484222325
FNV64_PRIME = 0x100000001b3


class FingerprintAlgorithm(str, Enum):
    FNV1A64 = "fnv1a64"
    BLAKE2B_256 = "blake2b_256"


def fnv1a64(data: bytes, seed: int = FNV64_OFFSET) -> int:
    """64-bit FNV-1a; returns unsigned 64-bit int."""
    h = seed & 0xFFFFFFFFFFFFFFFF
    for b in data:
        h ^= b
        h = (h * FNV64_PRIME) & 0xFFFFFFFFFFFFFFFF
    return h


def _uvarint(n: int) -> bytes:
    if n < 0:
        raise ValueError("uvarint requires non-negative")
    out = bytearray()
    while True:
        to_write = n & 0x7F
        n >>= 7
        if n:
            out.append(to_write | 0x80)
        else:
            out.append(to_write)
            break
    return bytes(out)


def encode_value(v: Any) -> bytes:
    """
    Canonical type-tagged encoding:
      I<len,varint><int-as-decimal>, S<len,varint><utf8>,
      L<len,varint><items...>, M<len,varint><k,v ...> with keys sorted by encoded bytes.
    """
    if isinstance(v, bool):
        v = int(v)
    if isinstance(v, int):
        b = str(v).encode("ascii")
        return b"I" + _uvarint(len(b)) + b
    if isinstance(v, str):
        b = v.encode("utf-8")
        return b"S" + _uvarint(len(b)) + b
    if isinstance(v, (list, tuple)):
        parts = bytearray(b"L" + _uvarint(len(v)))
        for item in v:
            parts += encode_value(item)
        return bytes(parts)
    if isinstance(v, dict):
        items = sorted((encode_value(k), encode_value(val)) for k, val in v.items())
        parts = bytearray(b"M" + _uvarint(len(items)))
        for ek, ev in items:
            parts += ek + ev
        return bytes(parts)
    raise TypeError(f"Cannot encode value of type {type(v).__name__}")


def encode_text_policy(policy: TextPolicyRules) -> bytes:
    """Canonical bytes of a text policy, fields in a fixed order."""
    return encode_value([
        policy.max_per_payment,
        policy.max_per_day,
        policy.max_per_week,
        list(policy.allowed_vendors),
        policy.allowed_hours_start,
        policy.allowed_hours_end,
        list(policy.allowed_weekdays),
        list(policy.blocked_keywords),
        dict(policy.category_limits),
        [[r.condition_type, r.threshold, r.action] for r in policy.conditional_rules],
        policy.min_ai_confidence,
    ])


def encode_bounded_policy(policy: PolicyRules) -> bytes:
    """Canonical bytes of a bounded policy; only active slots are included."""
    return encode_value([
        policy.max_per_payment,
        policy.max_per_day,
        policy.max_per_week,
        list(policy.vendors.active()),
        policy.allowed_hours_start,
        policy.allowed_hours_end,
        policy.allowed_weekday_mask,
        [[c.category_id, c.max_amount] for c in policy.category_limits.active()],
        [[r.condition_type, r.threshold, r.action] for r in policy.conditional_rules.active()],
        policy.min_ai_confidence,
    ])


def digest(data: bytes, algorithm: Union[FingerprintAlgorithm, str] = FingerprintAlgorithm.FNV1A64) -> bytes:
    """Digest ``data`` into a 32-byte fingerprint."""
    algorithm = FingerprintAlgorithm(algorithm)
    if algorithm == FingerprintAlgorithm.BLAKE2B_256:
        return hashlib.blake2b(data, digest_size=FINGERPRINT_SIZE).digest()
    return fnv1a64(data).to_bytes(FINGERPRINT_SIZE, "big")


def policy_fingerprint(policy: TextPolicyRules,
                       algorithm: Union[FingerprintAlgorithm, str] = FingerprintAlgorithm.FNV1A64) -> bytes:
    return digest(encode_text_policy(policy), algorithm)


def bounded_policy_fingerprint(policy: PolicyRules,
                               algorithm: Union[FingerprintAlgorithm, str] = FingerprintAlgorithm.FNV1A64) -> bytes:
    return digest(encode_bounded_policy(policy), algorithm)

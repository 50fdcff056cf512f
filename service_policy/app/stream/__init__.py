"""
Value-stream interface of the policy engine.

- codec: Positional read and commit of engine inputs and outputs.
- driver: Host-side serialisation, text policy lowering and output decoding.
"""

from .codec import ValueStreamReader, commit_evaluation, read_evaluation_inputs, run_stream
from .driver import (
    decode_committed, encode_evaluation_inputs, lower_text_intent, lower_text_policy
)

__all__ = [
    "ValueStreamReader",
    "commit_evaluation",
    "read_evaluation_inputs",
    "run_stream",
    "decode_committed",
    "encode_evaluation_inputs",
    "lower_text_intent",
    "lower_text_policy",
]

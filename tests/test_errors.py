"""Tests for error payload encoding."""

from __future__ import annotations

import pytest

from smartsafe.errors import (
    AlreadyInitialized,
    ExecutionFailed,
    InsufficientBalance,
    NonceMismatch,
    ProposalInactive,
    SafeError,
    UnknownSelector,
    decode_error,
)


def test_revert_data_round_trips() -> None:
    original = NonceMismatch(0, 1)
    decoded = decode_error(original.revert_data)
    assert isinstance(decoded, NonceMismatch)
    assert (decoded.required, decoded.got) == (0, 1)
    assert str(original) == "NonceMismatch(required=0, got=1)"


def test_nested_payload_is_passed_through_unmodified() -> None:
    inner = InsufficientBalance("0x" + "ab" * 20, 0, 10)
    outer = ExecutionFailed(inner.revert_data)
    decoded = decode_error(outer.revert_data)
    assert isinstance(decoded, ExecutionFailed)
    assert decoded.data == inner.revert_data
    nested = decode_error(decoded.data)
    assert isinstance(nested, InsufficientBalance)
    assert nested.required == 10


def test_argumentless_and_subclassed_errors() -> None:
    assert AlreadyInitialized().revert_data == AlreadyInitialized.selector()
    assert ProposalInactive.selector() != NonceMismatch.selector()
    assert isinstance(ProposalInactive(1, 0), NonceMismatch)
    assert decode_error(b"\x00\x00") is None
    assert decode_error(b"\xde\xad\xbe\xef") is None


def test_selector_fields_do_not_break_revert_data() -> None:
    error = UnknownSelector(b"\xde\xad\xbe\xef")
    assert error.revert_data[:4] == UnknownSelector.selector()
    decoded = decode_error(error.revert_data)
    assert isinstance(decoded, UnknownSelector)
    assert decoded.function_selector == b"\xde\xad\xbe\xef"


def test_fields_may_not_shadow_error_attributes() -> None:
    with pytest.raises(TypeError):

        class Shadowing(SafeError):
            signature = "Shadowing(bytes4)"
            fields = ("selector",)

import pytest

from app.payouts.state_machine import (
    InvalidTransition,
    TERMINAL_STATUSES,
    assert_ref_invariant,
    assert_transition,
)


def test_valid_transitions():
    assert_transition("pending", "sent")
    assert_transition("pending", "failed")
    assert_transition("sent", "paid")
    assert_transition("sent", "failed")


def test_invalid_transition_skipping_states():
    with pytest.raises(InvalidTransition):
        assert_transition("pending", "paid")


def test_no_regression_to_pending():
    with pytest.raises(InvalidTransition):
        assert_transition("sent", "pending")
    with pytest.raises(InvalidTransition):
        assert_transition("failed", "pending")


def test_terminal_states_cannot_transition():
    assert TERMINAL_STATUSES == {"paid", "failed"}
    with pytest.raises(InvalidTransition):
        assert_transition("paid", "failed")
    with pytest.raises(InvalidTransition):
        assert_transition("failed", "sent")


def test_sent_requires_external_ref():
    with pytest.raises(ValueError):
        assert_ref_invariant("sent", None)
    with pytest.raises(ValueError):
        assert_ref_invariant("paid", "")
    assert_ref_invariant("sent", "ext-1")


def test_ref_forbidden_outside_sent_or_paid():
    with pytest.raises(ValueError):
        assert_ref_invariant("failed", "ext-1")
    with pytest.raises(ValueError):
        assert_ref_invariant("pending", "ext-1")
    assert_ref_invariant("failed", None)

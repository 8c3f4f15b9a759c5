# app/payouts/state_machine.py

class InvalidTransition(Exception):
    pass


ALLOWED = {
    "pending": {"sent", "failed"},
    "sent": {"paid", "failed"},
    "paid": set(),
    "failed": set(),
}

TERMINAL_STATUSES = frozenset(s for s, nxt in ALLOWED.items() if not nxt)

# externalRef must be present exactly in these statuses
REF_STATUSES = frozenset({"sent", "paid"})


def can_transition(old: str, new: str) -> bool:
    return new in ALLOWED.get(old, set())


def assert_transition(old: str, new: str) -> None:
    if not can_transition(old, new):
        raise InvalidTransition(f"Illegal payout transition: {old} -> {new}")


def assert_ref_invariant(status: str, external_ref: str | None) -> None:
    """
    Invariant: external_ref is set if and only if status is sent or paid.
    """
    if status in REF_STATUSES and not external_ref:
        raise ValueError(f"Invariant violation: status={status} requires external_ref")
    if status not in REF_STATUSES and external_ref:
        raise ValueError(f"Invariant violation: status={status} must not carry external_ref")

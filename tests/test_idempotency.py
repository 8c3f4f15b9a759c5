from services.idempotency import request_hash, settlement_key


def test_same_payout_and_version_same_key():
    assert settlement_key("p1", 1) == settlement_key("p1", 1)


def test_version_change_changes_key():
    assert settlement_key("p1", 1) != settlement_key("p1", 2)


def test_different_payouts_differ():
    assert settlement_key("p1", 1) != settlement_key("p2", 1)


def test_key_shape():
    key = settlement_key("p1", 1)
    assert key.startswith("stl_")
    assert len(key) == 52


def test_request_hash_ignores_key_order():
    assert request_hash({"a": 1, "b": 2}) == request_hash({"b": 2, "a": 1})

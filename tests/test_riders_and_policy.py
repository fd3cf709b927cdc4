import pytest

from orders.policy import EXPIRY_SWEEP, LifecyclePolicy, default_lifecycle_policy, policy_from_env
from riders.models import UserRole, decode_user
from riders.selection import cities_match, filter_eligible_riders


def test_decode_user_is_defensive():
    user = decode_user("u1", {"role": " Rider ", "active": "yes", "online": True, "fcmToken": " tok "})

    assert user.uid == "u1"
    assert user.role == UserRole.RIDER
    assert user.active is False  # only a real boolean counts
    assert user.online is True
    assert user.fcm_token == "tok"

    assert decode_user("u2", {"role": "pilot"}).role == UserRole.UNKNOWN
    assert decode_user("u3", None).role == UserRole.UNKNOWN


@pytest.mark.parametrize("left, right, expected", [
    ("Harare", "harare", True),
    ("  Harare ", "HARARE", True),
    ("Harare", "Bulawayo", False),
    ("", "", False),
    ("   ", "   ", False),
    (None, "Harare", False),
])
def test_cities_match(left, right, expected):
    assert cities_match(left, right) is expected


def test_filter_eligible_riders():
    users = [
        decode_user("ok", {"role": "rider", "active": True, "online": True, "fcmToken": "t1"}),
        decode_user("offline", {"role": "rider", "active": True, "online": False, "fcmToken": "t2"}),
        decode_user("pending-approval", {"role": "rider", "active": False, "online": True, "fcmToken": "t3"}),
        decode_user("no-token", {"role": "rider", "active": True, "online": True}),
        decode_user("customer", {"role": "customer", "active": True, "online": True, "fcmToken": "t4"}),
    ]

    assert [u.uid for u in filter_eligible_riders(users)] == ["ok"]
    assert [u.uid for u in filter_eligible_riders(users, require_token=False)] == ["ok", "no-token"]


def test_default_policy():
    policy = default_lifecycle_policy()
    assert policy.acceptance_window.total_seconds() == 600
    assert policy.sweep_batch_size <= 500
    assert not policy.reject_when_active


@pytest.mark.parametrize("kwargs", [
    {"acceptance_window_seconds": 0},
    {"expiry_tick_seconds": 0},
    {"expiry_mode": "never"},
    {"sweep_batch_size": 501},
    {"routing_timeout_seconds": -1},
])
def test_policy_validation(kwargs):
    with pytest.raises(ValueError):
        LifecyclePolicy(**kwargs).validate()


def test_policy_from_env(monkeypatch):
    monkeypatch.setenv("ORDER_ACCEPTANCE_WINDOW_SEC", "300")
    monkeypatch.setenv("ORDER_EXPIRY_MODE", EXPIRY_SWEEP)
    monkeypatch.setenv("ORDER_PERSIST_OBSERVED_EXPIRY", "true")

    policy = policy_from_env()

    assert policy.acceptance_window_seconds == 300
    assert policy.expiry_mode == EXPIRY_SWEEP
    assert policy.persist_observed_expiry is True

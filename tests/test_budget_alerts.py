import pytest
from datetime import date, datetime

import budget_alerts
from budget_alerts import (
    EXCEEDED,
    NEAR_LIMIT,
    OK,
    classify,
    compute_spent,
    evaluate_budget,
    month_bounds,
    notify_once,
    sweep_budgets,
)
from database import Budget, Notification, User


def add_budget(session, amount, category="food", month=2, year=2024, user_id="alice"):
    budget = Budget(user_id=user_id, category=category, amount=amount, month=month, year=year)
    session.add(budget)
    session.commit()
    return budget


def notifications(session, user_id="alice"):
    return (
        session.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.id)
        .all()
    )


def test_month_bounds_handles_leap_february():
    assert month_bounds(1, 2024) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(11, 2023) == (date(2023, 12, 1), date(2023, 12, 31))


@pytest.mark.parametrize(
    "spent, limit, expected",
    [
        (460, 500, NEAR_LIMIT),
        (450, 500, OK),  # exactly 90% is not near the limit
        (500, 500, NEAR_LIMIT),  # exactly at the limit is not exceeded
        (500.01, 500, EXCEEDED),
        (10, 500, OK),
        (0.01, 0, EXCEEDED),
        (0, 0, OK),
    ],
)
def test_classify_uses_strict_thresholds(spent, limit, expected):
    assert classify(spent, limit) == expected


def test_compute_spent_only_counts_the_period(session, user, add_expense):
    session.add(User(username="bob", password="x"))
    session.commit()
    add_expense(100, day=date(2024, 3, 1))
    add_expense(50, day=date(2024, 3, 31))
    add_expense(999, day=date(2024, 2, 29))
    add_expense(999, day=date(2024, 4, 1))
    add_expense(999, category="transport", day=date(2024, 3, 15))
    add_expense(999, day=date(2024, 3, 15), user_id="bob")

    assert compute_spent(session, "alice", "food", 2, 2024) == 150


def test_evaluate_without_budget_is_noop(session, user, add_expense):
    add_expense(1000)
    assert evaluate_budget(session, "alice", "food", 2, 2024) is None
    assert notifications(session) == []


def test_near_limit_then_exceeded(session, user, add_expense):
    add_budget(session, 500)
    add_expense(400)
    add_expense(60)

    assert evaluate_budget(session, "alice", "food", 2, 2024) == NEAR_LIMIT
    assert evaluate_budget(session, "alice", "food", 2, 2024) == NEAR_LIMIT

    alerts = notifications(session)
    assert len(alerts) == 1
    assert alerts[0].type == "info"
    assert alerts[0].title == "Budget Alert"
    assert alerts[0].message == (
        "You are close to your food budget for 3/2024. Budget: 500.00, Spent: 460.00"
    )

    add_expense(60)
    assert evaluate_budget(session, "alice", "food", 2, 2024) == EXCEEDED

    alerts = notifications(session)
    assert [(n.type, n.title) for n in alerts] == [
        ("info", "Budget Alert"),
        ("warning", "Budget Exceeded"),
    ]
    assert "Spent: 520.00" in alerts[1].message
    assert (alerts[1].category, alerts[1].month, alerts[1].year) == ("food", 2, 2024)


def test_spend_equal_to_budget_raises_only_near_limit(session, user, add_expense):
    add_budget(session, 200)
    add_expense(200)

    assert evaluate_budget(session, "alice", "food", 2, 2024) == NEAR_LIMIT
    assert [n.title for n in notifications(session)] == ["Budget Alert"]


def test_zero_budget_alerts_on_any_spend(session, user, add_expense):
    add_budget(session, 0)
    add_expense(0.5)

    assert evaluate_budget(session, "alice", "food", 2, 2024) == EXCEEDED
    assert [n.type for n in notifications(session)] == ["warning"]


def test_ok_budget_creates_nothing(session, user, add_expense):
    add_budget(session, 500)
    add_expense(100)

    assert evaluate_budget(session, "alice", "food", 2, 2024) == OK
    assert notifications(session) == []


def test_notify_once_is_idempotent_until_read(session, user):
    assert notify_once(session, "alice", EXCEEDED, "food", 2, 2024, "first") is True
    assert notify_once(session, "alice", EXCEEDED, "food", 2, 2024, "second") is False
    assert len(notifications(session)) == 1

    alert = notifications(session)[0]
    alert.is_read = True
    session.commit()

    assert notify_once(session, "alice", EXCEEDED, "food", 2, 2024, "third") is True
    assert [n.message for n in notifications(session)] == ["first", "third"]


def test_notify_once_keys_on_period_and_severity(session, user):
    assert notify_once(session, "alice", EXCEEDED, "food", 2, 2024, "m") is True
    assert notify_once(session, "alice", NEAR_LIMIT, "food", 2, 2024, "m") is True
    assert notify_once(session, "alice", EXCEEDED, "food", 3, 2024, "m") is True
    assert notify_once(session, "alice", EXCEEDED, "food", 2, 2025, "m") is True
    assert notify_once(session, "alice", EXCEEDED, "travel", 2, 2024, "m") is True
    assert len(notifications(session)) == 5


def test_manual_notification_does_not_block_alerts(session, user):
    session.add(
        Notification(
            user_id="alice",
            title="Budget Exceeded",
            message="You have exceeded your food budget for 3/2024.",
            type="warning",
        )
    )
    session.commit()

    assert notify_once(session, "alice", EXCEEDED, "food", 2, 2024, "m") is True


def test_evaluate_swallows_failures(session, user, monkeypatch, caplog):
    add_budget(session, 100)

    def broken(*args, **kwargs):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(budget_alerts, "compute_spent", broken)

    assert evaluate_budget(session, "alice", "food", 2, 2024) is None
    assert "Budget evaluation failed" in caplog.text


def test_sweep_evaluates_current_month_budgets(session, user, add_expense):
    add_budget(session, 100, category="food")
    add_budget(session, 100, category="transport")
    add_budget(session, 100, category="travel", month=1)
    add_expense(150, category="food")
    add_expense(95, category="transport")
    add_expense(500, category="travel", day=date(2024, 2, 10))

    assert sweep_budgets(session, datetime(2024, 3, 25, 0, 0)) == 2
    assert sorted(n.category for n in notifications(session)) == ["food", "transport"]

    # Running again finds the unread alerts and creates nothing new.
    sweep_budgets(session, datetime(2024, 3, 26, 0, 0))
    assert len(notifications(session)) == 2

from __future__ import annotations

from datetime import timedelta

import pytest

from common.models.user import SubscriptionAccessStatus, SubscriptionType
from membership_service.app.exceptions import RecordNotFoundError
from membership_service.app.models.notification import NotificationKind
from membership_service.app.models.payment import PaymentStatus, PaymentType
from membership_service.app.models.subscription import (
    DriftKind,
    can_transition,
)
from membership_service.tests.fakes import (
    FAKE_SESSION,
    MembershipFixture,
    build_award,
    build_payment,
    build_subscription,
    build_user,
)


_S = SubscriptionAccessStatus


# -------- audit --------


def test_audit_flags_phantom_pending(membership: MembershipFixture) -> None:
    membership.users.add(build_user("user-001", status=_S.PENDING))

    report = membership.reconciler.audit()

    assert [(f.user_id, f.kind) for f in report.findings] == [
        ("user-001", DriftKind.PHANTOM_PENDING)
    ]
    assert report.errors == []


def test_audit_ignores_pending_user_with_real_pending_payment(
    membership: MembershipFixture,
) -> None:
    membership.users.add(build_user("user-001", status=_S.PENDING))
    membership.payments.add(build_payment(user_id="user-001"))

    report = membership.reconciler.audit()

    assert report.findings == []


def test_audit_counts_only_subscription_payments_as_pending(
    membership: MembershipFixture,
) -> None:
    membership.users.add(build_user("user-001", status=_S.PENDING))
    membership.payments.add(build_payment(user_id="user-001", type=PaymentType.OTHER))
    membership.payments.add(
        build_payment(user_id="user-001", status=PaymentStatus.COMPLETED)
    )

    report = membership.reconciler.audit()

    assert [f.kind for f in report.findings] == [DriftKind.PHANTOM_PENDING]


def test_audit_flags_valid_subscription_with_wrong_status(
    membership: MembershipFixture,
) -> None:
    membership.users.add(
        build_user("user-001", status=_S.EXPIRED, subscription=build_subscription())
    )
    membership.users.add(
        build_user("user-002", status=_S.ACTIVE, subscription=build_subscription())
    )
    membership.users.add(
        build_user(
            "user-003",
            status=_S.EXPIRED,
            subscription=build_subscription(expires_in=timedelta(days=-1)),
        )
    )

    report = membership.reconciler.audit()

    assert [(f.user_id, f.kind) for f in report.findings] == [
        ("user-001", DriftKind.INCONSISTENT_ACTIVE)
    ]


def test_audit_reports_both_rules_for_pending_user_with_valid_subscription(
    membership: MembershipFixture,
) -> None:
    subscription = build_subscription()
    membership.users.add(
        build_user("user-001", status=_S.PENDING, subscription=subscription)
    )

    report = membership.reconciler.audit()

    assert [f.kind for f in report.findings] == [
        DriftKind.PHANTOM_PENDING,
        DriftKind.INCONSISTENT_ACTIVE,
    ]

    phantom = membership.reconciler.repair("user-001", DriftKind.PHANTOM_PENDING)
    assert phantom.changed is True
    assert membership.users.users["user-001"].subscription_access_status == _S.EXPIRED

    active = membership.reconciler.repair("user-001", DriftKind.INCONSISTENT_ACTIVE)
    stored = membership.users.users["user-001"]
    assert active.changed is True
    assert stored.subscription_access_status == _S.ACTIVE
    assert stored.active_subscription == subscription
    assert membership.reconciler.audit().findings == []


def test_reconcile_brings_pending_user_with_valid_subscription_to_active(
    membership: MembershipFixture,
) -> None:
    membership.users.add(
        build_user("user-001", status=_S.PENDING, subscription=build_subscription())
    )

    report = membership.reconciler.reconcile()

    assert [(o.kind, o.changed) for o in report.repaired] == [
        (DriftKind.PHANTOM_PENDING, True),
        (DriftKind.INCONSISTENT_ACTIVE, True),
    ]
    assert membership.users.users["user-001"].subscription_access_status == _S.ACTIVE


def test_audit_continues_after_per_user_failure(membership: MembershipFixture) -> None:
    membership.users.add(build_user("user-001", status=_S.PENDING))
    membership.users.add(build_user("user-002", status=_S.PENDING))
    membership.users.add(build_user("user-003", status=_S.PENDING))
    membership.users.failing_user_ids.add("user-002")
    membership.users.vanished_user_ids.add("user-003")

    report = membership.reconciler.audit()

    assert [f.user_id for f in report.findings] == ["user-001"]
    assert [e.user_id for e in report.errors] == ["user-002"]
    assert report.stats.scanned == 1


def test_audit_collects_subscription_stats(membership: MembershipFixture) -> None:
    membership.users.add(
        build_user("user-001", status=_S.ACTIVE, subscription=build_subscription())
    )
    membership.users.add(
        build_user(
            "user-002",
            status=_S.ACTIVE,
            subscription=build_subscription(
                type=SubscriptionType.SEASONAL, payment_method="bonus"
            ),
        )
    )
    membership.users.add(build_user("user-003"))

    stats = membership.reconciler.audit().stats

    assert stats.scanned == 3
    assert stats.with_valid_subscription == 2
    assert stats.monthly == 1
    assert stats.seasonal == 1
    assert stats.paid_with_bonus == 1


# -------- repair --------


def test_repair_phantom_pending_expires_user(membership: MembershipFixture) -> None:
    user = build_user("user-001", status=_S.PENDING)
    user.subscription_payment_failed = True
    membership.users.add(user)

    outcome = membership.reconciler.repair("user-001", DriftKind.PHANTOM_PENDING)

    stored = membership.users.users["user-001"]
    assert outcome.changed is True
    assert stored.subscription_access_status == _S.EXPIRED
    assert stored.subscription_payment_failed is False
    assert stored.active_subscription is None


def test_repair_is_idempotent(membership: MembershipFixture) -> None:
    membership.users.add(build_user("user-001", status=_S.PENDING))

    first = membership.reconciler.repair("user-001", DriftKind.PHANTOM_PENDING)
    state_after_first = membership.users.users["user-001"].model_copy()
    second = membership.reconciler.repair("user-001", DriftKind.PHANTOM_PENDING)

    assert first.changed is True
    assert second.changed is False
    stored = membership.users.users["user-001"]
    assert stored.subscription_access_status == state_after_first.subscription_access_status
    assert stored.subscription_payment_failed == state_after_first.subscription_payment_failed


def test_repair_inconsistent_active_keeps_subscription(
    membership: MembershipFixture,
) -> None:
    subscription = build_subscription()
    membership.users.add(
        build_user("user-001", status=_S.EXPIRED, subscription=subscription)
    )

    outcome = membership.reconciler.repair("user-001", DriftKind.INCONSISTENT_ACTIVE)

    stored = membership.users.users["user-001"]
    assert outcome.changed is True
    assert stored.subscription_access_status == _S.ACTIVE
    assert stored.active_subscription == subscription


def test_repair_skips_user_whose_payment_showed_up(membership: MembershipFixture) -> None:
    membership.users.add(build_user("user-001", status=_S.PENDING))
    membership.payments.add(build_payment(user_id="user-001"))

    outcome = membership.reconciler.repair("user-001", DriftKind.PHANTOM_PENDING)

    assert outcome.changed is False
    assert membership.users.users["user-001"].subscription_access_status == _S.PENDING


def test_repair_raises_for_unknown_user(membership: MembershipFixture) -> None:
    with pytest.raises(RecordNotFoundError):
        membership.reconciler.repair("ghost", DriftKind.PHANTOM_PENDING)


# -------- reconcile --------


def test_reconcile_repairs_every_finding_and_is_rerunnable(
    membership: MembershipFixture,
) -> None:
    membership.users.add(build_user("user-001", status=_S.PENDING))
    membership.users.add(
        build_user("user-002", status=_S.FAILED, subscription=build_subscription())
    )
    membership.users.add(build_user("user-003", status=_S.ACTIVE, subscription=build_subscription()))

    first = membership.reconciler.reconcile()
    second = membership.reconciler.reconcile()

    assert sorted((o.user_id, o.changed) for o in first.repaired) == [
        ("user-001", True),
        ("user-002", True),
    ]
    assert membership.users.users["user-001"].subscription_access_status == _S.EXPIRED
    assert membership.users.users["user-002"].subscription_access_status == _S.ACTIVE
    assert second.audit.findings == []
    assert second.repaired == []


# -------- unlock --------


def test_unlock_cancels_pending_payments_and_refunds_bonus(
    membership: MembershipFixture,
) -> None:
    membership.users.add(build_user("user-001", status=_S.PENDING))
    membership.awards.add(build_award("a1", value=10, used_value=6))
    payment = membership.payments.add(
        build_payment(user_id="user-001", award_ids=["a1"], bonus_used=6)
    )

    outcome = membership.reconciler.unlock_user("user-001", admin_note="bloccato")

    assert payment.id is not None
    stored_payment = membership.payments.payments[payment.id]
    assert stored_payment.status == PaymentStatus.CANCELLED
    assert stored_payment.cancelled_by == "admin"
    assert stored_payment.admin_note == "bloccato"
    assert membership.users.users["user-001"].subscription_access_status == _S.EXPIRED
    assert membership.users.sessions == [FAKE_SESSION]
    assert membership.tx.committed == 1
    assert membership.awards.get("user-001", "a1").used_value == 0
    assert outcome.changed is True
    assert outcome.cancelled_payment_ids == [payment.id]
    assert [n.kind for n in outcome.notifications] == [
        NotificationKind.ACCOUNT_UNLOCKED,
        NotificationKind.BONUS_REFUNDED,
    ]


def test_unlock_ignores_users_that_are_not_pending(membership: MembershipFixture) -> None:
    membership.users.add(build_user("user-001", status=_S.ACTIVE))

    outcome = membership.reconciler.unlock_user("user-001")

    assert outcome.changed is False
    assert membership.tx.committed == 0


def test_state_machine_transitions() -> None:
    assert can_transition(_S.NONE, _S.PENDING)
    assert can_transition(_S.PENDING, _S.ACTIVE)
    assert can_transition(_S.ACTIVE, _S.EXPIRED)
    assert not can_transition(_S.NONE, _S.ACTIVE)
    assert not can_transition(_S.EXPIRED, _S.ACTIVE)
    assert not can_transition(_S.FAILED, _S.EXPIRED)

"""premi(보너스) 원장 서비스.

- premi 생성/차감/환불과 Premio Presenze 재평가를 처리한다.
- 모든 잔액 변경은 (used_value, value) compare-and-set 이며, 경합 시 다시 읽고 재계산한다.
- 모든 쓰기는 used_value + residuo == value, used == (residuo == 0) 를 유지한다.
  (Premio Presenze 의 value 가 used_value 아래로 내려간 경우만 residuo = 0 으로 둔다.)
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from fastapi import Depends
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from common.events.attendance import AttendanceChangedEvent
from common.mongo.client import get_database

from ..config import DEFAULT_AWARD_UPDATE_MAX_ATTEMPTS, get_membership_config
from ..exceptions import (
    AwardNotFoundError,
    AwardTemplateNotFoundError,
    AwardUpdateConflictError,
    BonusUnavailableError,
    DuplicateAwardError,
)
from ..models.award import (
    ATTENDANCE_AWARD_NAME,
    AwardGrantResult,
    AwardsSummary,
    AwardTemplate,
    AwardUsage,
    BonusCalculation,
    RefundedAward,
    RefundResult,
    SpendableAward,
    SpendResult,
    UserAward,
    is_spendable_award,
)
from ..models.notification import Notification, NotificationKind
from ..repositories.award_repository import AwardTemplateRepository, UserAwardRepository
from ..repositories.interfaces import (
    AwardTemplateRepositoryInterface,
    UserAwardRepositoryInterface,
)
from .attendance_value import attendance_award_value, clamp_percentage


logger = logging.getLogger(__name__)


def _money(amount: float) -> float:
    """금액을 센트 단위로 반올림한다."""
    return round(float(amount), 2)


def _require_amount(amount: float) -> float:
    if not math.isfinite(amount) or amount < 0:
        raise ValueError(f"amount must be a non-negative number: {amount!r}")
    return _money(amount)


def _balance_changes(value: float, used_value: float) -> dict[str, Any]:
    residuo = _money(max(0.0, value - used_value))
    return {"used_value": _money(used_value), "residuo": residuo, "used": residuo == 0}


class AwardLedgerService:
    """premi 원장 비즈니스 로직."""

    def __init__(
        self,
        award_repo: UserAwardRepositoryInterface,
        template_repo: AwardTemplateRepositoryInterface,
        *,
        max_attempts: int = DEFAULT_AWARD_UPDATE_MAX_ATTEMPTS,
    ) -> None:
        self._award_repo = award_repo
        self._template_repo = template_repo
        self._max_attempts = max(1, max_attempts)

    # 조회 -----------------------------------------------------------------
    @staticmethod
    def is_spendable(award_name: str) -> bool:
        """구매 할인에 쓸 수 있는 premi 인지 여부. Premio Presenze 만 False."""
        return is_spendable_award(award_name)

    def list_awards(self, user_id: str) -> list[UserAward]:
        return self._award_repo.list_by_user(user_id)

    def get_summary(self, user_id: str) -> AwardsSummary:
        awards = self._award_repo.list_by_user(user_id)
        spendable = sum(a.residuo for a in awards if self.is_spendable(a.name))
        non_spendable = sum(a.residuo for a in awards if not self.is_spendable(a.name))
        return AwardsSummary(
            user_id=user_id,
            total_spendable=_money(spendable),
            total_non_spendable=_money(non_spendable),
            awards=awards,
        )

    # 생성 -----------------------------------------------------------------
    def create(
        self,
        user_id: str,
        template_id: str,
        *,
        override_value: float | None = None,
    ) -> AwardGrantResult:
        """템플릿으로 새 premi 를 지급한다.

        같은 이름이나 같은 템플릿의 premi 를 이미 가지고 있으면 DuplicateAwardError.
        """
        template = self._template_repo.find_by_id(template_id)
        if template is None:
            raise AwardTemplateNotFoundError(f"award template not found: {template_id}")
        return self._grant(user_id, template, override_value)

    def create_by_name(
        self,
        user_id: str,
        name: str,
        *,
        override_value: float | None = None,
    ) -> AwardGrantResult:
        template = self._template_repo.find_by_name(name)
        if template is None:
            raise AwardTemplateNotFoundError(f"award template not found: {name!r}")
        return self._grant(user_id, template, override_value)

    def _grant(
        self,
        user_id: str,
        template: AwardTemplate,
        override_value: float | None,
    ) -> AwardGrantResult:
        value = _require_amount(
            template.value if override_value is None else override_value
        )

        if self._award_repo.find_by_name(user_id, template.name) is not None:
            raise DuplicateAwardError(user_id, template.name)

        now = datetime.now(timezone.utc)
        award = UserAward(
            user_id=user_id,
            award_id=template.id,
            name=template.name,
            value=value,
            used_value=0.0,
            residuo=value,
            used=value == 0,
            assigned_at=now,
            created_at=now,
            updated_at=now,
        )
        try:
            saved = self._award_repo.insert(award)
        except DuplicateKeyError as exc:
            raise DuplicateAwardError(user_id, template.name) from exc

        logger.info(
            "award granted name=%s value=%.2f",
            saved.name,
            saved.value,
            extra={"user_id": user_id, "award_id": saved.award_id},
        )
        notification = Notification(
            kind=NotificationKind.AWARD_GRANTED,
            user_id=user_id,
            title="Premio assegnato",
            description=f"Ti è stato assegnato il premio {saved.name} ({saved.value:.2f} €).",
            variant="success",
            data={"award_id": saved.award_id, "value": saved.value},
        )
        return AwardGrantResult(award=saved, notifications=[notification])

    # 차감 / 환불 ----------------------------------------------------------
    def spend(self, user_id: str, award_id: str, amount: float) -> SpendResult:
        """premi 잔액을 차감한다. 잔액을 넘는 금액은 조용히 잔액까지만 차감한다."""
        amount = _require_amount(amount)

        def _compute(award: UserAward) -> dict[str, Any] | None:
            new_used = max(award.used_value, min(award.value, award.used_value + amount))
            if _money(new_used) == award.used_value:
                return None
            return _balance_changes(award.value, new_used)

        before, after = self._update_with_retry(user_id, award_id, _compute)
        spent = _money(after.used_value - before.used_value)
        if spent < amount:
            logger.info(
                "spend capped requested=%.2f spent=%.2f",
                amount,
                spent,
                extra={"user_id": user_id, "award_id": award_id},
            )
        return SpendResult(
            award_id=award_id,
            spent=spent,
            used_value=after.used_value,
            residuo=after.residuo,
            used=after.used,
        )

    def refund(
        self, user_id: str, award_ids: Sequence[str], amount: float
    ) -> RefundResult:
        """award_ids 를 뒤에서부터(LIFO) 돌며 amount 만큼 used_value 를 되돌린다.

        - premi 별 환불액은 그 premi 의 used_value 를 넘지 않는다.
        - 없는 premi 는 건너뛴다.
        - 환불 가능액이 부족하면 예외 대신 shortfall / warning 으로 보고한다.
        """
        requested = _require_amount(amount)
        remaining = requested
        refunded_awards: list[RefundedAward] = []

        for award_id in reversed(list(award_ids)):
            if remaining <= 0:
                break
            try:
                returned = self._refund_one(user_id, award_id, remaining)
            except AwardNotFoundError:
                logger.warning(
                    "refund skipped missing award",
                    extra={"user_id": user_id, "award_id": award_id},
                )
                continue
            if returned is None:
                continue
            refunded_awards.append(returned)
            remaining = _money(remaining - returned.amount)

        refunded = _money(requested - remaining)
        result = RefundResult(
            requested=requested,
            refunded=refunded,
            shortfall=remaining,
            refunded_awards=refunded_awards,
        )
        if remaining > 0:
            result.warning = (
                f"insufficient refundable bonus: requested {requested:.2f}, "
                f"refunded {refunded:.2f}"
            )
            logger.warning(
                "refund shortfall requested=%.2f refunded=%.2f shortfall=%.2f",
                requested,
                refunded,
                remaining,
                extra={"user_id": user_id},
            )
        if refunded > 0:
            result.notifications.append(
                Notification(
                    kind=NotificationKind.BONUS_REFUNDED,
                    user_id=user_id,
                    title="Bonus rimborsato",
                    description=f"Sono stati riaccreditati {refunded:.2f} € di bonus.",
                    data={"refunded": refunded, "shortfall": remaining},
                )
            )
        return result

    def _refund_one(
        self, user_id: str, award_id: str, amount: float
    ) -> RefundedAward | None:
        def _compute(award: UserAward) -> dict[str, Any] | None:
            give_back = min(award.used_value, amount)
            if give_back <= 0:
                return None
            return _balance_changes(award.value, award.used_value - give_back)

        before, after = self._update_with_retry(user_id, award_id, _compute)
        returned = _money(before.used_value - after.used_value)
        if returned <= 0:
            return None
        return RefundedAward(award_id=award_id, amount=returned, residuo=after.residuo)

    # Premio Presenze ------------------------------------------------------
    def recompute_attendance_award(
        self, user_id: str, percentage: float
    ) -> UserAward | None:
        """출석률로 Premio Presenze 의 value 를 다시 계산한다.

        used_value 는 보존하고 residuo = max(0, 새 value - used_value) 로 맞춘다.
        유저에게 Premio Presenze 가 없으면 아무것도 쓰지 않고 None 을 반환한다.
        """
        new_value = attendance_award_value(percentage)
        clamped = clamp_percentage(percentage)

        award = self._award_repo.find_by_name(user_id, ATTENDANCE_AWARD_NAME)
        if award is None:
            logger.info(
                "no attendance award to recompute percentage=%.1f",
                clamped,
                extra={"user_id": user_id},
            )
            return None

        def _compute(current: UserAward) -> dict[str, Any] | None:
            changes = _balance_changes(new_value, current.used_value)
            changes["value"] = new_value
            changes["percentage"] = clamped
            unchanged = (
                current.value == new_value
                and current.residuo == changes["residuo"]
                and current.used == changes["used"]
                and current.percentage == clamped
            )
            return None if unchanged else changes

        _, after = self._update_with_retry(user_id, award.award_id, _compute)
        logger.info(
            "attendance award recomputed percentage=%.1f value=%.2f residuo=%.2f",
            clamped,
            after.value,
            after.residuo,
            extra={"user_id": user_id, "award_id": after.award_id},
        )
        return after

    def handle_attendance_changed(self, event: AttendanceChangedEvent) -> UserAward | None:
        return self.recompute_attendance_award(event.user_id, event.percentage)

    # 구매 할인 ------------------------------------------------------------
    def calculate_bonus_for_purchase(
        self, awards: Sequence[UserAward], price: float
    ) -> BonusCalculation:
        """구매 금액에 적용할 premi 와 금액을 계산한다. 저장소에는 쓰지 않는다.

        오래 지급된 premi 부터 (assigned_at, award_id) 오름차순으로 사용한다.
        """
        price = _require_amount(price)

        spendable = sorted(
            (
                a
                for a in awards
                if not a.used and a.residuo > 0 and self.is_spendable(a.name)
            ),
            key=lambda a: (a.assigned_at, a.award_id),
        )
        total_available = _money(sum(a.residuo for a in spendable))
        bonus_to_use = _money(min(total_available, price))

        usage: list[AwardUsage] = []
        remaining = bonus_to_use
        for award in spendable:
            if remaining <= 0:
                break
            take = _money(min(award.residuo, remaining))
            usage.append(AwardUsage(award_id=award.award_id, amount=take))
            remaining = _money(remaining - take)

        return BonusCalculation(
            spendable_awards=[
                SpendableAward(
                    id=a.award_id,
                    name=a.name,
                    available_amount=a.residuo,
                    assigned_at=a.assigned_at,
                )
                for a in spendable
            ],
            total_available=total_available,
            bonus_to_use=bonus_to_use,
            final_price=_money(price - bonus_to_use),
            award_usage=usage,
        )

    def quote_bonus(self, user_id: str, price: float) -> BonusCalculation:
        return self.calculate_bonus_for_purchase(
            self._award_repo.list_by_user(user_id), price
        )

    def apply_bonus(
        self, user_id: str, calculation: BonusCalculation
    ) -> list[SpendResult]:
        """계산된 award_usage 를 순서대로 차감한다.

        하나라도 실패하거나 견적보다 적게 차감되면 이미 차감한 금액을 되돌리고 예외를 다시 던진다.
        """
        applied: list[SpendResult] = []
        try:
            for usage in calculation.award_usage:
                result = self.spend(user_id, usage.award_id, usage.amount)
                applied.append(result)
                if _money(usage.amount - result.spent) > 0:
                    raise BonusUnavailableError(
                        f"award {usage.award_id} had only {result.spent:.2f} of "
                        f"{usage.amount:.2f} left for user {user_id}"
                    )
        except Exception:
            self._rollback_spends(user_id, applied)
            raise
        return applied

    def refund_bonus(self, user_id: str, calculation: BonusCalculation) -> RefundResult:
        return self.refund(user_id, calculation.award_ids, calculation.bonus_to_use)

    def _rollback_spends(self, user_id: str, applied: Sequence[SpendResult]) -> None:
        for result in reversed(applied):
            if result.spent <= 0:
                continue
            try:
                self.refund(user_id, [result.award_id], result.spent)
            except Exception:  # noqa: BLE001
                # 원래 예외를 그대로 올려야 하므로 복구 실패는 기록만 한다.
                logger.exception(
                    "failed to roll back bonus spend amount=%.2f",
                    result.spent,
                    extra={"user_id": user_id, "award_id": result.award_id},
                )

    # 내부 util -------------------------------------------------------------
    def _update_with_retry(
        self,
        user_id: str,
        award_id: str,
        compute: Callable[[UserAward], dict[str, Any] | None],
    ) -> tuple[UserAward, UserAward]:
        """읽기 -> 계산 -> 조건부 쓰기를 max_attempts 번까지 반복한다.

        Returns:
            (쓰기 직전에 읽은 premi, 쓰기 후 premi). 바꿀 것이 없으면 둘은 같은 객체다.
        """
        for attempt in range(1, self._max_attempts + 1):
            award = self._award_repo.find(user_id, award_id)
            if award is None:
                raise AwardNotFoundError(user_id, award_id)

            changes = compute(award)
            if changes is None:
                return award, award

            updated = self._award_repo.update_if_unchanged(
                user_id,
                award_id,
                expected_used_value=award.used_value,
                expected_value=award.value,
                changes=changes,
            )
            if updated is not None:
                return award, updated

            logger.warning(
                "award changed concurrently, retrying (%d/%d)",
                attempt,
                self._max_attempts,
                extra={"user_id": user_id, "award_id": award_id},
            )

        raise AwardUpdateConflictError(
            f"award {award_id} of user {user_id} kept changing after "
            f"{self._max_attempts} attempts"
        )


def build_award_ledger_service(database: Database) -> AwardLedgerService:
    return AwardLedgerService(
        UserAwardRepository(database),
        AwardTemplateRepository(database),
        max_attempts=get_membership_config().award_update_max_attempts,
    )


def get_award_ledger_service(
    db: Database = Depends(get_database),
) -> AwardLedgerService:
    """FastAPI DI용 AwardLedgerService 팩토리."""
    return build_award_ledger_service(db)

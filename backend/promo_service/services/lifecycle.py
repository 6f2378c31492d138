from __future__ import annotations

from dataclasses import dataclass
from datetime import date

import structlog

from promo_service.services.codes import Clock, CodeGenerator, PromoCode, normalize_code
from promo_service.services.errors import InvalidArgument, InvalidOrExpired, NotFound
from promo_service.services.store import CodeStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StoreSnapshot:
    active: list[PromoCode]
    redeemed: list[PromoCode]


class LifecycleService:
    def __init__(
        self,
        store: CodeStore,
        generator: CodeGenerator | None = None,
        *,
        clock: Clock = date.today,
    ) -> None:
        self.store = store
        self.generator = generator or CodeGenerator(clock=clock)
        self._clock = clock

    def generate_batch(self, count: int, *, today: date | None = None) -> list[PromoCode]:
        """
        Create ``count`` codes and persist them as active.

        Nothing is returned unless the whole batch was persisted; store errors
        propagate unchanged.
        """
        batch = self.generator.generate(count, today=today or self._clock())
        self.store.append_active(batch)
        logger.info(
            "promo_batch_generated",
            count=len(batch),
            expires_at=batch[0].expires_at.isoformat(),
        )
        return batch

    def redeem(self, raw_code: str, *, today: date | None = None) -> PromoCode:
        code = normalize_code(raw_code)
        if not code:
            raise InvalidArgument("Promo code is required.")
        today = today or self._clock()

        candidate = next((promo for promo in self.store.load_active() if promo.code == code), None)
        if candidate is None or not candidate.is_valid_on(today):
            logger.info("promo_redeem_rejected", code=code, reason="NOT_ACTIVE" if candidate is None else "EXPIRED")
            raise InvalidOrExpired(code)

        # the snapshot above may be stale; the move re-checks under the store lock
        try:
            redeemed = self.store.move_to_redeemed(code, valid_on=today)
        except NotFound as exc:
            logger.info("promo_redeem_rejected", code=code, reason="LOST_RACE")
            raise InvalidOrExpired(code) from exc

        logger.info("promo_code_redeemed", code=code)
        return redeemed

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(active=self.store.load_active(), redeemed=self.store.load_redeemed())

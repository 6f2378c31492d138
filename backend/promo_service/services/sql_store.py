from __future__ import annotations

import threading
from datetime import date
from typing import Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from promo_service.db import make_engine, make_sessionmaker
from promo_service.models import ActivePromoCode, Base, RedeemedPromoCode
from promo_service.services.codes import PromoCode
from promo_service.services.errors import DuplicateCode, NotFound, StorageUnavailable
from promo_service.services.store import CodeStore, find_duplicates

logger = structlog.get_logger(__name__)


class SqlCodeStore(CodeStore):
    """
    Indexed backend: one table per collection, one transaction per mutation.

    Tables are created on first use rather than at construction, so an
    unreachable database surfaces as ``StorageUnavailable`` from the first
    operation instead of failing application start-up.
    """

    def __init__(self, engine: Engine, *, lock_timeout_s: float = 10.0, create_schema: bool = True) -> None:
        super().__init__(lock_timeout_s=lock_timeout_s)
        self.engine = engine
        self._sessions = make_sessionmaker(engine)
        self._schema_ready = not create_schema
        self._schema_lock = threading.Lock()

    @classmethod
    def from_url(cls, database_url: str, **kwargs) -> SqlCodeStore:
        return cls(make_engine(database_url), **kwargs)

    def load_active(self) -> list[PromoCode]:
        return self._load(ActivePromoCode)

    def load_redeemed(self) -> list[PromoCode]:
        return self._load(RedeemedPromoCode)

    def append_active(self, codes: Sequence[PromoCode]) -> None:
        self._ensure_schema()
        incoming = [promo.code for promo in codes]
        with self._locked():
            try:
                with self._sessions() as db, db.begin():
                    taken_active = db.execute(
                        select(ActivePromoCode.code).where(ActivePromoCode.code.in_(incoming))
                    ).scalars().all()
                    taken_redeemed = db.execute(
                        select(RedeemedPromoCode.code).where(RedeemedPromoCode.code.in_(incoming))
                    ).scalars().all()
                    duplicates = find_duplicates(incoming, taken_active, taken_redeemed)
                    if duplicates:
                        logger.error("promo_duplicate_code", codes=duplicates)
                        raise DuplicateCode(duplicates)
                    db.add_all(
                        [
                            ActivePromoCode(
                                code=promo.code,
                                generated_at=promo.generated_at,
                                expires_at=promo.expires_at,
                            )
                            for promo in codes
                        ]
                    )
            except SQLAlchemyError as exc:
                logger.error("promo_store_write_failed", table=ActivePromoCode.__tablename__, error=str(exc))
                raise StorageUnavailable("Cannot persist promo codes.") from exc

    def move_to_redeemed(self, code: str, *, valid_on: date | None = None) -> PromoCode:
        self._ensure_schema()
        with self._locked():
            try:
                with self._sessions() as db, db.begin():
                    stmt = select(ActivePromoCode).where(ActivePromoCode.code == code).with_for_update()
                    row = db.execute(stmt).scalar_one_or_none()
                    if row is None:
                        raise NotFound(code)
                    moved = _to_promo(row)
                    if valid_on is not None and not moved.is_valid_on(valid_on):
                        raise NotFound(code)

                    db.delete(row)
                    db.add(
                        RedeemedPromoCode(
                            code=moved.code,
                            generated_at=moved.generated_at,
                            expires_at=moved.expires_at,
                        )
                    )
            except SQLAlchemyError as exc:
                logger.error("promo_store_write_failed", table=RedeemedPromoCode.__tablename__, error=str(exc))
                raise StorageUnavailable("Cannot persist promo code redemption.") from exc
        return moved

    def _load(self, model: type[ActivePromoCode] | type[RedeemedPromoCode]) -> list[PromoCode]:
        self._ensure_schema()
        try:
            with self._sessions() as db:
                rows = db.execute(select(model).order_by(model.generated_at, model.code)).scalars().all()
                return [_to_promo(row) for row in rows]
        except SQLAlchemyError as exc:
            logger.error("promo_store_read_failed", table=model.__tablename__, error=str(exc))
            raise StorageUnavailable(f"Cannot read {model.__tablename__}.") from exc

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        with self._schema_lock:
            if self._schema_ready:
                return
            try:
                Base.metadata.create_all(bind=self.engine)
            except SQLAlchemyError as exc:
                logger.error("promo_store_schema_failed", error=str(exc))
                raise StorageUnavailable("Cannot prepare the promo code tables.") from exc
            self._schema_ready = True


def _to_promo(row: ActivePromoCode | RedeemedPromoCode) -> PromoCode:
    return PromoCode(code=row.code, generated_at=row.generated_at, expires_at=row.expires_at)

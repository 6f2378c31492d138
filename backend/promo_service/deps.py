from __future__ import annotations

from fastapi import Depends, Request

from promo_service.services.codes import CodeGenerator
from promo_service.services.lifecycle import LifecycleService
from promo_service.services.sql_store import SqlCodeStore
from promo_service.services.store import CodeStore, JsonFileCodeStore
from promo_service.settings import Settings, settings


def build_code_store(config: Settings) -> CodeStore:
    backend = config.STORE_BACKEND.strip().lower()
    if backend == "json":
        return JsonFileCodeStore(
            config.DATA_DIR / config.ACTIVE_CODES_FILE,
            config.DATA_DIR / config.REDEEMED_CODES_FILE,
            lock_timeout_s=config.STORE_LOCK_TIMEOUT_SECONDS,
        )
    if backend == "sql":
        return SqlCodeStore.from_url(config.DATABASE_URL, lock_timeout_s=config.STORE_LOCK_TIMEOUT_SECONDS)
    raise ValueError(f"Unknown STORE_BACKEND: {config.STORE_BACKEND!r}")


def build_generator(config: Settings) -> CodeGenerator:
    return CodeGenerator(
        prefix=config.CODE_PREFIX,
        length=config.CODE_LENGTH,
        validity_days=config.VALIDITY_DAYS,
    )


def get_code_store(request: Request) -> CodeStore:
    return request.app.state.code_store


def get_lifecycle(store: CodeStore = Depends(get_code_store)) -> LifecycleService:
    return LifecycleService(store, build_generator(settings))

from __future__ import annotations

import random
from datetime import date

import pytest
from fastapi.testclient import TestClient

from promo_service.deps import get_code_store
from promo_service.main import app
from promo_service.services.codes import CodeGenerator
from promo_service.services.sql_store import SqlCodeStore
from promo_service.services.store import JsonFileCodeStore

DAY0 = date(2026, 1, 1)


@pytest.fixture()
def json_store(tmp_path):
    return JsonFileCodeStore(tmp_path / "promo-codes.json", tmp_path / "redeemed-codes.json")


@pytest.fixture()
def sql_store(tmp_path):
    store = SqlCodeStore.from_url(f"sqlite+pysqlite:///{tmp_path / 'promo-codes.db'}")
    yield store
    store.engine.dispose()


@pytest.fixture(params=["json", "sql"])
def any_store(request):
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture()
def generator():
    return CodeGenerator(rng=random.Random(1234), clock=lambda: DAY0)


@pytest.fixture()
def client(json_store):
    app.dependency_overrides[get_code_store] = lambda: json_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_code_store, None)

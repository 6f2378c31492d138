from __future__ import annotations

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from promo_service.deps import get_code_store
from promo_service.main import app
from promo_service.routes.promo import parse_amount
from promo_service.services.codes import PromoCode
from promo_service.services.errors import DuplicateCode, InvalidArgument, StorageUnavailable
from promo_service.services.sql_store import SqlCodeStore
from promo_service.services.store import CodeStore


class UnavailableStore(CodeStore):
    def load_active(self):
        raise StorageUnavailable("down")

    def load_redeemed(self):
        raise StorageUnavailable("down")

    def append_active(self, codes):
        raise StorageUnavailable("down")

    def move_to_redeemed(self, code, *, valid_on=None):
        raise StorageUnavailable("down")


def _issue(store, code: str = "PROMO-ABC123XYZ", *, expires_at: date | None = None) -> PromoCode:
    today = date.today()
    promo = PromoCode(code=code, generated_at=today, expires_at=expires_at or today + timedelta(days=15))
    store.append_active([promo])
    return promo


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_readyz_reports_store_state(client, json_store):
    assert client.get("/readyz").json() == {"ready": True}

    json_store.active_path.write_text("not json")
    response = client.get("/readyz")
    assert response.status_code == 503
    assert response.json() == {"ready": False}


def test_generate_pdfs_returns_pdf_and_persists_codes(client, json_store):
    response = client.get("/generate-pdfs", params={"amount": "3"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert "promo-codes.pdf" in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")
    active = json_store.load_active()
    assert len(active) == 3
    assert all(promo.expires_at == date.today() + timedelta(days=15) for promo in active)


def test_generate_pdfs_defaults_to_one_code(client, json_store):
    assert client.get("/generate-pdfs").status_code == 200
    assert client.get("/generate-pdfs", params={"amount": "lots"}).status_code == 200
    assert client.get("/generate-pdfs", params={"amount": "0"}).status_code == 200
    assert len(json_store.load_active()) == 3


def test_generate_pdfs_rejects_negative_amount(client, json_store):
    response = client.get("/generate-pdfs", params={"amount": "-2"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_AMOUNT"
    assert json_store.load_active() == []


def test_generate_pdfs_rejects_oversized_batch(client, json_store):
    response = client.get("/generate-pdfs", params={"amount": "100000"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_AMOUNT"
    assert json_store.load_active() == []


def test_generate_pdfs_storage_failure_serves_no_pdf():
    app.dependency_overrides[get_code_store] = lambda: UnavailableStore()
    try:
        with TestClient(app) as test_client:
            response = test_client.get("/generate-pdfs", params={"amount": "2"})
    finally:
        app.dependency_overrides.pop(get_code_store, None)

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {
        "ok": False,
        "error": {"code": "STORAGE_UNAVAILABLE", "message": "Internal Server Error"},
    }


def test_validate_requires_code(client):
    for params in ({}, {"code": ""}, {"code": "   "}):
        response = client.get("/validate-promo-code", params=params)
        assert response.status_code == 400
        assert response.json()["error"] == {"code": "PROMO_CODE_REQUIRED", "message": "Promo code is required"}


def test_validate_unknown_code(client):
    response = client.get("/validate-promo-code", params={"code": "PROMO-UNKNOWN00"})
    assert response.status_code == 400
    assert response.json()["error"] == {
        "code": "INVALID_OR_EXPIRED",
        "message": "Invalid or expired promo code",
    }


def test_validate_redeems_once(client, json_store):
    promo = _issue(json_store)

    response = client.get("/validate-promo-code", params={"code": promo.code.lower()})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["message"] == "Promo code successfully redeemed"
    assert data["promo_code"]["code"] == promo.code

    again = client.get("/validate-promo-code", params={"code": promo.code})
    assert again.status_code == 400
    assert again.json()["error"]["code"] == "INVALID_OR_EXPIRED"
    assert json_store.load_redeemed() == [promo]
    assert json_store.load_active() == []


def test_validate_expired_code(client, json_store):
    promo = _issue(json_store, expires_at=date.today())

    response = client.get("/validate-promo-code", params={"code": promo.code})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_OR_EXPIRED"
    assert json_store.load_active() == [promo]


def test_validate_storage_failure():
    app.dependency_overrides[get_code_store] = lambda: UnavailableStore()
    try:
        with TestClient(app) as test_client:
            response = test_client.get("/validate-promo-code", params={"code": "PROMO-ABC123XYZ"})
    finally:
        app.dependency_overrides.pop(get_code_store, None)

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "STORAGE_UNAVAILABLE"


def test_list_promo_codes(client, json_store):
    fresh = _issue(json_store, "PROMO-FRESH0001")
    stale = _issue(json_store, "PROMO-STALE0001", expires_at=date.today() - timedelta(days=1))
    redeemed = _issue(json_store, "PROMO-USED00001")
    json_store.move_to_redeemed(redeemed.code)

    data = client.get("/api/promo-codes").json()["data"]

    flags = {item["code"]: item["expired"] for item in data["active"]}
    assert flags == {fresh.code: False, stale.code: True}
    assert [item["code"] for item in data["redeemed"]] == [redeemed.code]


def test_redeem_page(client):
    response = client.get("/redeem")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "/validate-promo-code" in response.text


class DuplicatingStore(UnavailableStore):
    def load_active(self):
        return []

    def append_active(self, codes):
        raise DuplicateCode([codes[0].code])


def test_generate_pdfs_duplicate_code_serves_no_pdf():
    app.dependency_overrides[get_code_store] = lambda: DuplicatingStore()
    try:
        with TestClient(app) as test_client:
            response = test_client.get("/generate-pdfs", params={"amount": "2"})
    finally:
        app.dependency_overrides.pop(get_code_store, None)

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {
        "ok": False,
        "error": {"code": "DUPLICATE_CODE", "message": "Internal Server Error"},
    }


def test_generate_pdfs_render_failure_serves_no_pdf(client, json_store, monkeypatch):
    def broken_render(*args, **kwargs):
        raise RuntimeError("font cache missing")

    monkeypatch.setattr("promo_service.routes.promo.render_promo_pdf", broken_render)
    response = client.get("/generate-pdfs", params={"amount": "2"})

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {
        "ok": False,
        "error": {"code": "RENDER_FAILED", "message": "Internal Server Error"},
    }
    # persisted codes stay valid; they were only never printed
    assert len(json_store.load_active()) == 2


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, 1),
        ("", 1),
        ("lots", 1),
        ("0", 1),
        ("3", 3),
        (" 4", 4),
        ("3.5", 3),
        ("10abc", 10),
        ("+2", 2),
    ],
)
def test_parse_amount_reads_leading_integer(raw, expected):
    assert parse_amount(raw, maximum=500) == expected


@pytest.mark.parametrize("raw", ["-2", "-1.5", "501"])
def test_parse_amount_rejects_out_of_range(raw):
    with pytest.raises(InvalidArgument):
        parse_amount(raw, maximum=500)


def test_generate_pdfs_uses_leading_digits(client, json_store):
    response = client.get("/generate-pdfs", params={"amount": "2.9"})
    assert response.status_code == 200
    assert len(json_store.load_active()) == 2


def test_readyz_reports_unreachable_database(tmp_path):
    store = SqlCodeStore.from_url(f"sqlite+pysqlite:///{tmp_path / 'missing' / 'promo-codes.db'}")
    app.dependency_overrides[get_code_store] = lambda: store
    try:
        with TestClient(app) as test_client:
            response = test_client.get("/readyz")
    finally:
        app.dependency_overrides.pop(get_code_store, None)

    assert response.status_code == 503
    assert response.json() == {"ready": False}

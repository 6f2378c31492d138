from __future__ import annotations

import re
from datetime import date

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse, Response

from promo_service.deps import get_lifecycle
from promo_service.schemas.promo import ActivePromoCodeResponse, PromoCodeResponse, PromoRedeemResponse
from promo_service.services.codes import PromoCode
from promo_service.services.errors import (
    DuplicateCode,
    InvalidArgument,
    InvalidOrExpired,
    StorageUnavailable,
)
from promo_service.services.lifecycle import LifecycleService
from promo_service.services.renderer import render_promo_pdf
from promo_service.settings import settings

logger = structlog.get_logger(__name__)

router = APIRouter()

_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")


@router.get("/generate-pdfs")
def generate_pdfs(
    amount: str | None = Query(default=None),
    lifecycle: LifecycleService = Depends(get_lifecycle),
) -> Response:
    try:
        count = parse_amount(amount, maximum=settings.MAX_CODES_PER_REQUEST)
    except InvalidArgument as exc:
        raise _error(400, "INVALID_AMOUNT", str(exc)) from exc

    try:
        batch = lifecycle.generate_batch(count)
    except DuplicateCode as exc:
        raise _error(500, exc.code, "Internal Server Error") from exc
    except StorageUnavailable as exc:
        raise _error(500, exc.code, "Internal Server Error") from exc

    try:
        pdf = render_promo_pdf(
            batch,
            contact_phone=settings.CONTACT_PHONE,
            discount_percent=settings.DISCOUNT_PERCENT,
        )
    except Exception as exc:
        logger.error("promo_pdf_render_failed", count=len(batch), error=str(exc))
        raise _error(500, "RENDER_FAILED", "Internal Server Error") from exc

    headers = {"Content-Disposition": 'attachment; filename="promo-codes.pdf"'}
    return Response(content=pdf, media_type="application/pdf", headers=headers)


@router.get("/validate-promo-code")
def validate_promo_code(
    code: str | None = Query(default=None),
    lifecycle: LifecycleService = Depends(get_lifecycle),
) -> dict:
    if not code or not code.strip():
        raise _error(400, "PROMO_CODE_REQUIRED", "Promo code is required")

    try:
        promo = lifecycle.redeem(code)
    except InvalidOrExpired as exc:
        raise _error(400, exc.code, "Invalid or expired promo code") from exc
    except StorageUnavailable as exc:
        raise _error(500, exc.code, "Internal Server Error") from exc

    return {
        "ok": True,
        "data": PromoRedeemResponse(
            message="Promo code successfully redeemed",
            promo_code=_promo_response(promo),
        ).model_dump(mode="json"),
    }


@router.get("/api/promo-codes")
def list_promo_codes(lifecycle: LifecycleService = Depends(get_lifecycle)) -> dict:
    try:
        snapshot = lifecycle.snapshot()
    except StorageUnavailable as exc:
        raise _error(500, exc.code, "Internal Server Error") from exc

    today = date.today()
    return {
        "ok": True,
        "data": {
            "active": [
                ActivePromoCodeResponse(
                    code=promo.code,
                    generated_at=promo.generated_at,
                    expires_at=promo.expires_at,
                    expired=not promo.is_valid_on(today),
                ).model_dump(mode="json")
                for promo in snapshot.active
            ],
            "redeemed": [_promo_response(promo).model_dump(mode="json") for promo in snapshot.redeemed],
        },
    }


@router.get("/redeem", response_class=HTMLResponse)
def redeem_page() -> str:
    return REDEEM_PAGE


def parse_amount(raw: str | None, *, maximum: int) -> int:
    """Read the leading integer of ``raw``; missing, non-numeric or zero amounts mean a single code."""
    match = _LEADING_INT.match(raw or "")
    amount = int(match.group(1)) if match else 1
    if amount == 0:
        amount = 1
    if amount < 0:
        raise InvalidArgument("Amount must be positive.")
    if amount > maximum:
        raise InvalidArgument(f"Amount must not exceed {maximum}.")
    return amount


def _promo_response(promo: PromoCode) -> PromoCodeResponse:
    return PromoCodeResponse(code=promo.code, generated_at=promo.generated_at, expires_at=promo.expires_at)


def _error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"ok": False, "error": {"code": code, "message": message}},
    )


REDEEM_PAGE = """
<!doctype html>
<html>
  <head>
    <meta charset="utf-8">
    <title>Redeem Promo Code</title>
    <style>
      body {
        font-family: system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
        max-width: 480px;
        margin: 2rem auto;
        padding: 0 1rem;
      }
      input[type="text"] {
        width: 100%;
        padding: 0.4rem;
        margin-top: 0.25rem;
        text-transform: uppercase;
      }
      button {
        margin-top: 1rem;
        padding: 0.5rem 1.25rem;
      }
      #result.ok { color: #127a2e; }
      #result.error { color: #b00020; }
    </style>
  </head>
  <body>
    <h1>Redeem Promo Code</h1>
    <form id="redeem-form">
      <label>
        Promo code
        <input type="text" name="code" placeholder="PROMO-XXXXXXXXX" autocomplete="off" />
      </label>
      <button type="submit">Redeem</button>
    </form>
    <p id="result"></p>
    <script>
      const form = document.getElementById("redeem-form");
      const result = document.getElementById("result");
      form.addEventListener("submit", async (event) => {
        event.preventDefault();
        const code = form.elements.code.value.trim();
        const response = await fetch("/validate-promo-code?code=" + encodeURIComponent(code));
        const body = await response.json();
        result.className = body.ok ? "ok" : "error";
        result.textContent = body.ok ? body.data.message : body.error.message;
      });
    </script>
  </body>
</html>
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel


class PromoCodeResponse(BaseModel):
    code: str
    generated_at: date
    expires_at: date


class ActivePromoCodeResponse(PromoCodeResponse):
    expired: bool


class PromoRedeemResponse(BaseModel):
    message: str
    promo_code: PromoCodeResponse

from __future__ import annotations


class PromoCodeError(ValueError):
    code = "PROMO_CODE_ERROR"


class InvalidArgument(PromoCodeError):
    code = "INVALID_ARGUMENT"


class DuplicateCode(PromoCodeError):
    code = "DUPLICATE_CODE"

    def __init__(self, codes: list[str]) -> None:
        super().__init__(f"Promo code(s) already issued: {', '.join(codes)}")
        self.codes = codes


class NotFound(PromoCodeError):
    code = "NOT_FOUND"


class InvalidOrExpired(PromoCodeError):
    """Unknown, already redeemed and expired codes are deliberately indistinguishable."""

    code = "INVALID_OR_EXPIRED"


class StorageUnavailable(PromoCodeError):
    code = "STORAGE_UNAVAILABLE"

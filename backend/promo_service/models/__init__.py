from .base import Base  # noqa: F401
from .promo_code import ActivePromoCode, RedeemedPromoCode  # noqa: F401

from __future__ import annotations

import random
import secrets
import string
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable

from promo_service.services.errors import InvalidArgument

CODE_ALPHABET = string.ascii_uppercase + string.digits
MIN_CODE_LENGTH = 9
DEFAULT_VALIDITY_DAYS = 15

Clock = Callable[[], date]


@dataclass(frozen=True)
class PromoCode:
    code: str
    generated_at: date
    expires_at: date

    def is_valid_on(self, today: date) -> bool:
        return self.expires_at > today

    def to_dict(self) -> dict[str, str]:
        return {
            "code": self.code,
            "generatedAt": self.generated_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> PromoCode:
        return cls(
            code=str(payload["code"]),
            generated_at=date.fromisoformat(payload["generatedAt"]),
            expires_at=date.fromisoformat(payload["expiresAt"]),
        )


def normalize_code(raw_code: str) -> str:
    return (raw_code or "").strip().upper()


class CodeGenerator:
    """Builds batches of random promo codes; performs no I/O."""

    def __init__(
        self,
        *,
        prefix: str = "PROMO-",
        length: int = MIN_CODE_LENGTH,
        validity_days: int = DEFAULT_VALIDITY_DAYS,
        rng: random.Random | None = None,
        clock: Clock = date.today,
    ) -> None:
        if length < MIN_CODE_LENGTH:
            raise InvalidArgument(f"Code length must be at least {MIN_CODE_LENGTH}.")
        if validity_days < 1:
            raise InvalidArgument("Validity window must be at least one day.")
        self.prefix = prefix.upper()
        self.length = length
        self.validity_days = validity_days
        self._rng = rng or secrets.SystemRandom()
        self._clock = clock

    def generate(self, count: int, *, today: date | None = None) -> list[PromoCode]:
        if count <= 0:
            raise InvalidArgument("Code count must be positive.")

        generated_at = today or self._clock()
        expires_at = generated_at + timedelta(days=self.validity_days)

        codes: list[str] = []
        seen: set[str] = set()
        while len(codes) < count:
            code = self._random_code()
            if code in seen:
                continue
            seen.add(code)
            codes.append(code)

        return [PromoCode(code=code, generated_at=generated_at, expires_at=expires_at) for code in codes]

    def _random_code(self) -> str:
        body = "".join(self._rng.choice(CODE_ALPHABET) for _ in range(self.length))
        return f"{self.prefix}{body}"

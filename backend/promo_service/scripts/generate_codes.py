from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from promo_service.deps import build_code_store, build_generator
from promo_service.log_config import configure_logging
from promo_service.services.errors import PromoCodeError
from promo_service.services.lifecycle import LifecycleService
from promo_service.services.renderer import render_promo_pdf
from promo_service.settings import settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate promo codes and print them to a PDF.")
    parser.add_argument("count", type=int, help="Number of promo codes to generate.")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("promo-codes.pdf"),
        help="Where to write the PDF (default: ./promo-codes.pdf).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(settings.LOG_LEVEL)

    lifecycle = LifecycleService(build_code_store(settings), build_generator(settings))
    try:
        batch = lifecycle.generate_batch(args.count)
    except PromoCodeError as exc:
        raise SystemExit(f"Could not generate promo codes: {exc}") from exc

    pdf = render_promo_pdf(batch, contact_phone=settings.CONTACT_PHONE, discount_percent=settings.DISCOUNT_PERCENT)
    output: Path = args.output.expanduser().resolve()
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(pdf)

    print(f"Generated {len(batch)} promo codes -> {output}")
    for promo in batch:
        print(f"  {promo.code}  (expires {promo.expires_at.isoformat()})")


if __name__ == "__main__":
    main()

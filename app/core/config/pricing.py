from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

DEFAULT_PRICING_PATH = Path(__file__).resolve().parents[3] / "config" / "pricing.yaml"
DEFAULT_FULL_PRICE_CENTS = 5000


@dataclass(frozen=True)
class DiscountCode:
    code: str
    percentage: int
    description: str = ""
    active: bool = True
    discounted_amount_cents: int | None = None

    @classmethod
    def from_mapping(cls, code: str, raw: dict[str, Any]) -> "DiscountCode":
        percentage = int(raw.get("percentage") or 0)
        if not 0 <= percentage <= 100:
            raise RuntimeError(f"Discount code '{code}' has an invalid percentage: {percentage}")
        explicit = raw.get("discounted_amount_cents")
        return cls(
            code=code,
            percentage=percentage,
            description=str(raw.get("description") or ""),
            active=bool(raw.get("active", True)),
            discounted_amount_cents=int(explicit) if explicit is not None else None,
        )

    def discounted_amount(self, full_price_cents: int) -> int:
        if self.discounted_amount_cents is not None:
            return self.discounted_amount_cents
        return full_price_cents * (100 - self.percentage) // 100


def _pricing_path() -> Path:
    override = (os.getenv("PRICING_CONFIG_PATH") or "").strip()
    return Path(override) if override else DEFAULT_PRICING_PATH


@lru_cache(maxsize=1)
def get_pricing_config() -> dict[str, Any]:
    """Load the price list and discount codes; the result is cached for the process."""
    path = _pricing_path()
    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise RuntimeError(f"Pricing config not found at '{path}'.") from exc
    except (OSError, yaml.YAMLError) as exc:
        raise RuntimeError(f"Unreadable pricing config '{path}': {exc}") from exc

    if not isinstance(parsed, dict):
        raise RuntimeError(f"Invalid pricing config '{path}': expected a top-level mapping.")
    return parsed


def get_pricing_value(path: str, default: Any = None) -> Any:
    """Dot-path lookup, e.g. ``prices.full_price_cents``."""
    current: Any = get_pricing_config()
    for key in path.split(".") if path else ():
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current if path else default


def full_price_cents() -> int:
    return int(get_pricing_value("prices.full_price_cents", DEFAULT_FULL_PRICE_CENTS))


def discount_codes() -> dict[str, DiscountCode]:
    raw = get_pricing_value("discount_codes", {}) or {}
    if not isinstance(raw, dict):
        return {}
    codes = {}
    for code, entry in raw.items():
        key = str(code).strip().upper()
        codes[key] = DiscountCode.from_mapping(key, dict(entry or {}))
    return codes

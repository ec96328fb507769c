# alianah/services/zakat.py
"""
Zakat nisab prices and the 2.5% calculation.

Live spot prices come from goldapi.io (GBP per troy ounce) when
``GOLDAPI_API_KEY`` is configured; any failure falls back to fixed prices.
The silver nisab is the threshold used for the calculation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Mapping, Optional

import requests
from flask import current_app

log = logging.getLogger(__name__)

NISAB_GOLD_GRAMS = 87.48
NISAB_SILVER_GRAMS = 612.36
TROY_OZ_TO_GRAMS = 31.1035

FALLBACK_GOLD_GBP_PER_GRAM = 65.0
FALLBACK_SILVER_GBP_PER_GRAM = 0.78

ZAKAT_RATE = Decimal("0.025")

GOLDAPI_URL = "https://www.goldapi.io/api/{metal}/GBP"

ASSET_FIELDS = (
    "cashInHand",
    "savingsDeposits",
    "loansGiven",
    "investmentsShares",
    "tradeGoods",
    "goldValue",
    "silverValue",
)
LIABILITY_FIELDS = ("borrowedMoney", "wagesDue", "taxesRentBills")


@dataclass(frozen=True)
class ZakatPrices:
    gold_per_gram_gbp: float
    silver_per_gram_gbp: float
    nisab_gold_gbp: float
    nisab_silver_gbp: float
    updated_at: str
    source: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "goldPerGramGBP": self.gold_per_gram_gbp,
            "silverPerGramGBP": self.silver_per_gram_gbp,
            "nisabGoldGBP": self.nisab_gold_gbp,
            "nisabSilverGBP": self.nisab_silver_gbp,
            "updatedAt": self.updated_at,
            "source": self.source,
        }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _build(gold_per_gram: float, silver_per_gram: float, source: str, places: int) -> ZakatPrices:
    return ZakatPrices(
        gold_per_gram_gbp=round(gold_per_gram, places),
        silver_per_gram_gbp=round(silver_per_gram, places),
        nisab_gold_gbp=round(gold_per_gram * NISAB_GOLD_GRAMS, 2),
        nisab_silver_gbp=round(silver_per_gram * NISAB_SILVER_GRAMS, 2),
        updated_at=_now_iso(),
        source=source,
    )


def fallback_prices() -> ZakatPrices:
    return _build(FALLBACK_GOLD_GBP_PER_GRAM, FALLBACK_SILVER_GBP_PER_GRAM, "fallback", 4)


def _fetch_per_gram(session: requests.Session, metal: str, api_key: str, timeout: float) -> float:
    resp = session.get(GOLDAPI_URL.format(metal=metal), headers={"x-access-token": api_key}, timeout=timeout)
    resp.raise_for_status()
    return float(resp.json()["price"]) / TROY_OZ_TO_GRAMS


def get_zakat_prices(session: Optional[requests.Session] = None) -> ZakatPrices:
    api_key = current_app.config.get("GOLDAPI_API_KEY")
    if not api_key:
        return fallback_prices()

    timeout = float(current_app.config.get("GOLDAPI_TIMEOUT") or 5)
    http = session or requests.Session()
    try:
        gold = _fetch_per_gram(http, "XAU", api_key, timeout)
        silver = _fetch_per_gram(http, "XAG", api_key, timeout)
    except (requests.RequestException, KeyError, TypeError, ValueError) as e:
        log.error("Zakat prices API error: %s", e)
        return fallback_prices()
    return _build(gold, silver, "api", 4)


def _money(value: Any) -> Decimal:
    if value in (None, ""):
        return Decimal("0")
    try:
        d = Decimal(str(value))
    except ArithmeticError:
        raise ValueError(f"not a number: {value!r}")
    if not d.is_finite() or d < 0:
        raise ValueError(f"must be a non-negative amount: {value!r}")
    return d


def _pounds(d: Decimal) -> float:
    return float(d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def calculate_zakat(values: Mapping[str, Any], nisab_gbp: float) -> Dict[str, Any]:
    """Zakat is 2.5% of net wealth when net wealth reaches a positive nisab.

    Raises ``ValueError`` naming the first unknown field, or the first field
    that is not a non-negative number.
    """
    unknown = sorted(set(values) - set(ASSET_FIELDS) - set(LIABILITY_FIELDS))
    if unknown:
        raise ValueError(f"{unknown[0]}: unknown field")

    assets = Decimal("0")
    for field in ASSET_FIELDS:
        try:
            assets += _money(values.get(field))
        except ValueError as e:
            raise ValueError(f"{field}: {e}") from e
    liabilities = Decimal("0")
    for field in LIABILITY_FIELDS:
        try:
            liabilities += _money(values.get(field))
        except ValueError as e:
            raise ValueError(f"{field}: {e}") from e

    net = assets - liabilities
    nisab = Decimal(str(nisab_gbp))
    above = nisab > 0 and net >= nisab
    due = net * ZAKAT_RATE if above else Decimal("0")
    return {
        "totalAssetsGBP": _pounds(assets),
        "totalLiabilitiesGBP": _pounds(liabilities),
        "netWealthGBP": _pounds(net),
        "nisabGBP": _pounds(nisab),
        "aboveNisab": bool(above),
        "zakatDueGBP": _pounds(due),
        "zakatDuePence": int((due * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
    }

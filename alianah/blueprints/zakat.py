"""
Zakat API.

Mount: /api/zakat

  GET  /prices      gold/silver GBP per gram and nisab values
  POST /calculate   assets and liabilities (GBP) -> zakat due against the silver nisab
"""

from __future__ import annotations

from flask import Blueprint

from alianah.extensions import csrf
from alianah.services.zakat import calculate_zakat, get_zakat_prices

from .api_utils import _json_error, _json_ok, _request_payload

bp = Blueprint("zakat", __name__)
csrf.exempt(bp)


@bp.get("/prices")
def prices():
    return _json_ok(get_zakat_prices().as_dict())


@bp.post("/calculate")
def calculate():
    payload = _request_payload()
    prices = get_zakat_prices()
    try:
        result = calculate_zakat(payload, prices.nisab_silver_gbp)
    except ValueError as e:
        return _json_error(str(e), 400)
    result["prices"] = prices.as_dict()
    return _json_ok(result)

import pytest
import requests

from alianah.services.zakat import (
    NISAB_SILVER_GRAMS,
    calculate_zakat,
    fallback_prices,
    get_zakat_prices,
)


def test_below_nisab_owes_nothing():
    result = calculate_zakat({"cashInHand": "100", "savingsDeposits": 200}, nisab_gbp=477.64)
    assert result["netWealthGBP"] == 300.0
    assert result["aboveNisab"] is False
    assert result["zakatDueGBP"] == 0.0
    assert result["zakatDuePence"] == 0


def test_liabilities_are_deducted_before_two_and_a_half_percent():
    result = calculate_zakat(
        {"cashInHand": 10000, "goldValue": "2000.50", "borrowedMoney": 1000, "taxesRentBills": "0.50"},
        nisab_gbp=477.64,
    )
    assert result["totalAssetsGBP"] == 12000.5
    assert result["totalLiabilitiesGBP"] == 1000.5
    assert result["netWealthGBP"] == 11000.0
    assert result["aboveNisab"] is True
    assert result["zakatDueGBP"] == 275.0
    assert result["zakatDuePence"] == 27500


def test_every_asset_and_liability_field_counts():
    result = calculate_zakat(
        {
            "cashInHand": 100,
            "savingsDeposits": 100,
            "loansGiven": 100,
            "investmentsShares": 100,
            "tradeGoods": 100,
            "goldValue": 100,
            "silverValue": 100,
            "borrowedMoney": 10,
            "wagesDue": 10,
            "taxesRentBills": 10,
        },
        nisab_gbp=500,
    )
    assert result["totalAssetsGBP"] == 700.0
    assert result["totalLiabilitiesGBP"] == 30.0
    assert result["netWealthGBP"] == 670.0
    assert result["zakatDuePence"] == 1675


def test_net_wealth_exactly_at_nisab_is_due():
    result = calculate_zakat({"cashInHand": 500}, nisab_gbp=500)
    assert result["aboveNisab"] is True
    assert result["zakatDueGBP"] == 12.5


def test_zero_nisab_never_applies():
    assert calculate_zakat({"cashInHand": 5000}, nisab_gbp=0)["aboveNisab"] is False


@pytest.mark.parametrize("bad", ["-5", "abc", "nan", -1])
def test_rejects_invalid_amounts(bad):
    with pytest.raises(ValueError, match="cashInHand"):
        calculate_zakat({"cashInHand": bad}, nisab_gbp=100)


def test_rejects_invalid_liability():
    with pytest.raises(ValueError, match="wagesDue"):
        calculate_zakat({"cashInHand": 1000, "wagesDue": "-1"}, nisab_gbp=100)


def test_rejects_unknown_fields():
    with pytest.raises(ValueError, match="cash: unknown field"):
        calculate_zakat({"cash": 10000}, nisab_gbp=100)


def test_fallback_prices_without_api_key(app):
    with app.app_context():
        prices = get_zakat_prices()
    assert prices.source == "fallback"
    assert prices.nisab_silver_gbp == round(0.78 * NISAB_SILVER_GRAMS, 2)


class _FailingSession:
    def get(self, *args, **kwargs):
        raise requests.ConnectionError("offline")


class _PriceSession:
    def __init__(self, prices):
        self.prices = prices

    def get(self, url, headers=None, timeout=None):
        price = self.prices["XAU" if "/XAU/" in url else "XAG"]
        return _Resp({"price": price})


class _Resp:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self.payload


def test_api_prices_are_converted_per_gram(app):
    app.config["GOLDAPI_API_KEY"] = "goldapi-key"
    with app.app_context():
        prices = get_zakat_prices(session=_PriceSession({"XAU": 3110.35, "XAG": 31.1035}))
    assert prices.source == "api"
    assert prices.gold_per_gram_gbp == 100.0
    assert prices.silver_per_gram_gbp == 1.0


def test_api_failure_falls_back(app):
    app.config["GOLDAPI_API_KEY"] = "goldapi-key"
    with app.app_context():
        prices = get_zakat_prices(session=_FailingSession())
    assert prices.as_dict() | {"updatedAt": None} == fallback_prices().as_dict() | {"updatedAt": None}


def test_calculate_endpoint(client):
    resp = client.post("/api/zakat/calculate", json={"cashInHand": 10000})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["zakatDueGBP"] == 250.0
    assert body["prices"]["source"] == "fallback"


@pytest.mark.parametrize("payload", [{"cashInHand": -1}, {"cash": 10000}, {"borrowedMoney": "lots"}])
def test_calculate_endpoint_rejects_bad_input(client, payload):
    resp = client.post("/api/zakat/calculate", json=payload)
    assert resp.status_code == 400
    assert resp.get_json()["ok"] is False

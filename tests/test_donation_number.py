import re

import pytest

from alianah.errors import DonationNumberExhausted
from alianah.extensions import db
from alianah.models import OfflineIncome
from alianah.services import donation_number
from alianah.services.donation_number import donation_number_exists, generate_donation_number


def test_format_is_prefix_and_eight_digits(app):
    with app.app_context():
        number = generate_donation_number()
    assert re.fullmatch(r"786-1\d{8}", number)


def test_skips_numbers_already_taken(app, monkeypatch):
    digits = iter(["00000001", "00000002"])
    monkeypatch.setattr(donation_number, "_random_digits", lambda: next(digits))
    with app.app_context():
        db.session.add(OfflineIncome(donation_number="786-100000001", amount_pence=500, source="CASH"))
        db.session.commit()
        assert donation_number_exists("786-100000001")
        assert generate_donation_number() == "786-100000002"


def test_gives_up_after_max_attempts(app, monkeypatch):
    calls = []

    def _same():
        calls.append(1)
        return "12345678"

    monkeypatch.setattr(donation_number, "_random_digits", _same)
    with app.app_context():
        db.session.add(OfflineIncome(donation_number="786-112345678", amount_pence=500, source="CASH"))
        db.session.commit()
        with pytest.raises(DonationNumberExhausted):
            generate_donation_number()
    assert len(calls) == 15

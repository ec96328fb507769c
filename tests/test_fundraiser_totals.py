from collections import namedtuple

from alianah.extensions import db
from alianah.models import (
    Donation,
    FundraiserCashDonation,
    WaterProject,
    WaterProjectCountry,
    WaterProjectDonation,
)
from alianah.services.donation_dedup import (
    dedup_key,
    deduplicate_by_transaction,
    get_deduplicated_count,
    get_deduplicated_group_by,
    get_deduplicated_sum,
)
from alianah.services.fundraiser_totals import get_fundraiser_total_raised_and_count

Row = namedtuple("Row", "id amount_pence order_number transaction_id")


def test_dedup_keeps_first_row_per_order_and_transaction():
    rows = [
        Row("a", 1000, "786-100000001", "pi_1"),
        Row("b", 1000, "786-100000001", "pi_1"),
        Row("c", 500, "786-100000001", "pi_2"),
        Row("d", 700, None, "pi_1"),
        Row("e", 700, "786-100000002", None),
    ]
    kept = deduplicate_by_transaction(rows)
    assert [r.id for r in kept] == ["a", "c", "d", "e"]
    assert dedup_key(rows[3]) == "d"


def _donation(donor_id, fundraiser_id, amount, order="786-100000001", txn="pi_1", status="COMPLETED", **kw):
    return Donation(
        donor_id=donor_id,
        fundraiser_id=fundraiser_id,
        amount_pence=amount,
        order_number=order,
        transaction_id=txn,
        status=status,
        **kw,
    )


def test_appeal_fundraiser_counts_each_transaction_once_plus_approved_cash(app, make_donor, make_fundraiser):
    donor_id = make_donor()
    fundraiser_id = make_fundraiser()
    with app.app_context():
        db.session.add_all(
            [
                _donation(donor_id, fundraiser_id, 2500),
                _donation(donor_id, fundraiser_id, 2500),  # same basket, same charge
                _donation(donor_id, fundraiser_id, 1000, order="786-100000002", txn="pi_2"),
                _donation(donor_id, fundraiser_id, 9999, order="786-100000003", txn="pi_3", status="PENDING"),
                FundraiserCashDonation(fundraiser_id=fundraiser_id, amount_pence=300, status="APPROVED"),
                FundraiserCashDonation(fundraiser_id=fundraiser_id, amount_pence=400, status="PENDING_REVIEW"),
                FundraiserCashDonation(fundraiser_id=fundraiser_id, amount_pence=500, status="REJECTED"),
            ]
        )
        db.session.commit()

        totals = get_fundraiser_total_raised_and_count(fundraiser_id, False)
    assert totals.total_raised_pence == 2500 + 1000 + 300
    assert totals.donation_count == 3
    assert totals.as_dict() == {"totalRaisedPence": 3800, "donationCount": 3}


def test_water_fundraiser_ignores_online_donations(app, make_donor, make_fundraiser):
    donor_id = make_donor()
    with app.app_context():
        project = WaterProject(project_type="WATER_PUMP")
        country = WaterProjectCountry(project_type="WATER_PUMP", country="Gambia", price_pence=15000)
        db.session.add_all([project, country])
        db.session.commit()
        project_id, country_id = project.id, country.id
    fundraiser_id = make_fundraiser(water_project_id=project_id)

    with app.app_context():
        db.session.add_all(
            [
                _donation(donor_id, fundraiser_id, 5000),
                WaterProjectDonation(
                    water_project_id=project_id,
                    country_id=country_id,
                    fundraiser_id=fundraiser_id,
                    donor_id=donor_id,
                    donation_number="786-100000010",
                    amount_pence=15000,
                    status="ORDERED",
                ),
                WaterProjectDonation(
                    water_project_id=project_id,
                    country_id=country_id,
                    fundraiser_id=fundraiser_id,
                    donor_id=donor_id,
                    donation_number="786-100000011",
                    amount_pence=15000,
                    status="PENDING",
                ),
                FundraiserCashDonation(fundraiser_id=fundraiser_id, amount_pence=200, status="APPROVED"),
            ]
        )
        db.session.commit()

        totals = get_fundraiser_total_raised_and_count(fundraiser_id, True)
    assert totals.total_raised_pence == 15200
    assert totals.donation_count == 2


def test_water_fundraiser_counts_paid_statuses_only(app, make_donor, make_fundraiser):
    donor_id = make_donor()
    with app.app_context():
        project = WaterProject(project_type="WATER_WELL")
        country = WaterProjectCountry(project_type="WATER_WELL", country="Pakistan", price_pence=30000)
        db.session.add_all([project, country])
        db.session.commit()
        project_id, country_id = project.id, country.id
    fundraiser_id = make_fundraiser(water_project_id=project_id)

    with app.app_context():
        for n, status in enumerate(("PENDING", "WAITING_TO_REVIEW", "ORDERED", "COMPLETE")):
            db.session.add(
                WaterProjectDonation(
                    water_project_id=project_id,
                    country_id=country_id,
                    fundraiser_id=fundraiser_id,
                    donor_id=donor_id,
                    donation_number=f"786-10000002{n}",
                    amount_pence=1000 * (n + 1),
                    status=status,
                )
            )
        db.session.commit()

        totals = get_fundraiser_total_raised_and_count(fundraiser_id, True)
    assert totals.total_raised_pence == 2000 + 3000 + 4000
    assert totals.donation_count == 3


def test_deduplicated_sum_count_and_group_by(app, make_donor, make_fundraiser):
    donor_id = make_donor()
    fundraiser_id = make_fundraiser()
    with app.app_context():
        db.session.add_all(
            [
                _donation(donor_id, fundraiser_id, 1000, donation_type="ZAKAT"),
                _donation(donor_id, fundraiser_id, 1000, donation_type="ZAKAT"),
                _donation(donor_id, fundraiser_id, 400, order="786-100000002", txn="pi_9", donation_type="SADAQAH"),
            ]
        )
        db.session.commit()

        assert get_deduplicated_sum(Donation.status == "COMPLETED") == 1400
        assert get_deduplicated_count(Donation.status == "COMPLETED") == 2
        groups = {g["donation_type"]: g for g in get_deduplicated_group_by("donation_type")}
    assert groups["ZAKAT"]["sum"] == 1000
    assert groups["ZAKAT"]["count"] == 1
    assert groups["SADAQAH"]["sum"] == 400

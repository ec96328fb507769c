import pytest

from alianah import create_app
from alianah.extensions import db
from alianah.models import AdminUser, Appeal, Donor, Fundraiser

ADMIN_PASSWORD = "Sup3r!Secret#pass"


@pytest.fixture()
def app():
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def login_as(app):
    """Create an admin with the given role and return a logged-in test client."""

    def _login(role="ADMIN", email=None):
        email = email or f"{role.lower()}@alianah.org"
        with app.app_context():
            user = AdminUser(email=email, role=role, two_factor_enabled=False)
            user.set_password(ADMIN_PASSWORD)
            db.session.add(user)
            db.session.commit()
        c = app.test_client()
        resp = c.post("/api/admin/login", json={"email": email, "password": ADMIN_PASSWORD})
        assert resp.status_code == 200, resp.get_json()
        return c

    return _login


@pytest.fixture()
def admin_client(login_as):
    return login_as("ADMIN")


@pytest.fixture()
def make_appeal(app):
    def _make(title="Emergency Appeal", slug=None, **kwargs):
        with app.app_context():
            appeal = Appeal(title=title, slug=slug or title.lower().replace(" ", "-"), **kwargs)
            db.session.add(appeal)
            db.session.commit()
            return appeal.id

    return _make


@pytest.fixture()
def make_donor(app):
    def _make(email="donor@example.com", first_name="Amina", last_name="Khan", **kwargs):
        with app.app_context():
            donor = Donor(email=email, first_name=first_name, last_name=last_name, **kwargs)
            db.session.add(donor)
            db.session.commit()
            return donor.id

    return _make


@pytest.fixture()
def make_fundraiser(app, make_appeal):
    def _make(slug="run4water", email="runner@example.com", appeal_id=None, **kwargs):
        appeal_id = appeal_id or make_appeal(title=f"Appeal for {slug}", allow_fundraising=True)
        with app.app_context():
            fundraiser = Fundraiser(
                appeal_id=appeal_id,
                title="Marathon for the appeal",
                slug=slug,
                fundraiser_name="Yusuf",
                email=email,
                target_amount_pence=100_000,
                **kwargs,
            )
            db.session.add(fundraiser)
            db.session.commit()
            return fundraiser.id

    return _make

"""Tests for the dashboard routes and public pages.

Covers:
- Anonymous visitors are sent to the identity hub
- Dashboard renders the referral account and its referrals
- Add / edit referral and profile forms flash the right outcome
- Other referrers' referrals cannot be edited through the form
- A failing account lookup renders the load error instead of a 500
- Landing page, terms page and security headers
"""

from urllib.parse import parse_qs, urlsplit

from referral_portal.extensions import db, schema_probe
from referral_portal.services import account_service
from referral_portal.services.auth_service import Identity
from referral_portal.services.referral_service import ReferralRepository

LEAD_FORM = {
    "leadName": "Mr Lee",
    "leadMobileNumber": "0123456789",
    "livingRegion": "Selangor",
    "relationship": "Friend",
}


def _referrals_of(identity):
    referrer = account_service.find_or_create_referrer_account(identity)
    return ReferralRepository(db.session, schema_probe).list_referrals(referrer.customer_id)


class TestAccess:
    def test_dashboard_requires_login(self, client):
        resp = client.get("/dashboard")
        assert resp.status_code == 302
        location = urlsplit(resp.headers["Location"])
        assert location.path == "/auth/start"
        assert parse_qs(location.query)["return_to"] == ["/dashboard"]

    def test_post_requires_login(self, client):
        resp = client.post("/dashboard/referrals", data=LEAD_FORM)
        assert resp.status_code == 302
        assert "/auth/start" in resp.headers["Location"]

    def test_invalid_cookie_is_anonymous(self, client):
        client.set_cookie("auth_token", "not-a-real-token")
        resp = client.get("/dashboard")
        assert resp.status_code == 302
        assert "/auth/start" in resp.headers["Location"]


class TestDashboard:
    def test_renders_account(self, auth_client, identity):
        resp = auth_client.get("/dashboard")
        assert resp.status_code == 200

        referrer = account_service.find_or_create_referrer_account(identity)
        body = resp.get_data(as_text=True)
        assert "Welcome, Aina" in body
        assert referrer.customer_id in body
        assert "No referrals yet." in body

    def test_lists_referrals(self, auth_client, identity):
        auth_client.post("/dashboard/referrals", data=LEAD_FORM)
        body = auth_client.get("/dashboard").get_data(as_text=True)
        assert "Mr Lee" in body
        assert "Selangor" in body
        assert "No referrals yet." not in body

    def test_load_failure_renders_error(self, auth_client, monkeypatch):
        def boom(identity):
            raise RuntimeError("permission denied for table customer")

        monkeypatch.setattr(account_service, "find_or_create_referrer_account", boom)

        resp = auth_client.get("/dashboard")
        assert resp.status_code == 200
        body = resp.get_data(as_text=True)
        assert "Unable to load your referral account" in body
        assert "permission denied" not in body


class TestAddReferral:
    def test_add_flashes_success(self, auth_client, identity):
        resp = auth_client.post("/dashboard/referrals", data=LEAD_FORM, follow_redirects=True)
        assert resp.status_code == 200
        assert "Referral added." in resp.get_data(as_text=True)

        referrals = _referrals_of(identity)
        assert len(referrals) == 1
        assert referrals[0].status == "Pending"

    def test_validation_message_is_flashed(self, auth_client, identity):
        data = dict(LEAD_FORM, leadName="A")
        resp = auth_client.post("/dashboard/referrals", data=data, follow_redirects=True)
        assert "Lead name is required" in resp.get_data(as_text=True)
        assert _referrals_of(identity) == []

    def test_unknown_relationship_becomes_other(self, auth_client, identity):
        auth_client.post("/dashboard/referrals", data=dict(LEAD_FORM, relationship="Cousin"))
        assert _referrals_of(identity)[0].relationship == "Other"

    def test_submitted_status_is_ignored(self, auth_client, identity):
        auth_client.post("/dashboard/referrals", data=dict(LEAD_FORM, status="Won"))
        assert _referrals_of(identity)[0].status == "Pending"


class TestEditReferral:
    def _edit_form(self, referral, **overrides):
        data = dict(LEAD_FORM, referralId=str(referral.id), status=referral.status)
        data.update(overrides)
        return data

    def test_edit_status(self, auth_client, identity):
        auth_client.post("/dashboard/referrals", data=LEAD_FORM)
        referral = _referrals_of(identity)[0]

        resp = auth_client.post(
            "/dashboard/referrals/edit",
            data=self._edit_form(referral, status="Won"),
            follow_redirects=True,
        )

        assert "Referral updated." in resp.get_data(as_text=True)
        assert _referrals_of(identity)[0].status == "Won"

    def test_cannot_edit_other_referrers_referral(self, auth_client, lead_data):
        owner = Identity(phone="+60199990000")
        owner_account = account_service.find_or_create_referrer_account(owner)
        ReferralRepository(db.session, schema_probe).create_referral(owner_account, lead_data)
        referral = _referrals_of(owner)[0]

        resp = auth_client.post(
            "/dashboard/referrals/edit",
            data=self._edit_form(referral, leadName="Hijacked", status="Lost"),
            follow_redirects=True,
        )

        assert "You can only edit your own referrals." in resp.get_data(as_text=True)
        unchanged = _referrals_of(owner)[0]
        assert unchanged.lead_name == "Mr Lee"
        assert unchanged.status == "Pending"

    def test_invalid_status_is_flashed(self, auth_client, identity):
        auth_client.post("/dashboard/referrals", data=LEAD_FORM)
        referral = _referrals_of(identity)[0]

        resp = auth_client.post(
            "/dashboard/referrals/edit",
            data=self._edit_form(referral, status="Paid"),
            follow_redirects=True,
        )
        assert "Invalid referral status" in resp.get_data(as_text=True)

    def test_missing_referral_is_flashed(self, auth_client):
        resp = auth_client.post(
            "/dashboard/referrals/edit",
            data=dict(LEAD_FORM, referralId="999", status="Won"),
            follow_redirects=True,
        )
        assert "Referral record not found." in resp.get_data(as_text=True)


class TestProfile:
    PROFILE_FORM = {
        "displayName": "Aina Rahman",
        "profilePicture": "https://cdn.example.com/aina.png",
        "bankAccount": "1234567890",
        "bankerName": "Maybank",
    }

    def test_update_is_displayed(self, auth_client):
        resp = auth_client.post("/dashboard/profile", data=self.PROFILE_FORM, follow_redirects=True)
        body = resp.get_data(as_text=True)
        assert "Profile updated." in body
        assert "Welcome, Aina Rahman" in body
        assert "Maybank" in body
        assert "https://cdn.example.com/aina.png" in body

    def test_validation_message_is_flashed(self, auth_client):
        data = dict(self.PROFILE_FORM, bankAccount="12")
        resp = auth_client.post("/dashboard/profile", data=data, follow_redirects=True)
        assert "Bank account number is required" in resp.get_data(as_text=True)


class TestPublicPages:
    def test_index_for_visitors(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert "Sign in with WhatsApp" in resp.get_data(as_text=True)

    def test_index_redirects_signed_in(self, auth_client):
        resp = auth_client.get("/")
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/dashboard")

    def test_terms(self, client):
        resp = client.get("/terms")
        assert resp.status_code == 200
        body = resp.get_data(as_text=True)
        assert "Eternalgy Sdn Bhd" in body
        assert "2%" in body


class TestSecurityHeaders:
    def test_headers_on_page(self, client):
        resp = client.get("/")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
        assert "frame-ancestors 'none'" in resp.headers["Content-Security-Policy"]

    def test_headers_on_404(self, client):
        resp = client.get("/no-such-page")
        assert resp.status_code == 404
        assert resp.headers["X-Frame-Options"] == "DENY"

"""Portal blueprint — /dashboard*

Referrer-facing dashboard: payout profile, referral submission and the
referral list with inline editing.

Routes:
  GET  /dashboard                  — profile + referral list
  POST /dashboard/referrals        — submit a new referral
  POST /dashboard/referrals/edit   — edit an existing referral
  POST /dashboard/profile          — update payout profile
"""

import logging

from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_required

from referral_portal.extensions import db, limiter
from referral_portal.services import account_service
from referral_portal.services.errors import ReferralError
from referral_portal.services.referral_service import (
    REFERRAL_STATUSES,
    ReferralRepository,
)
from referral_portal.terms import COMPANY_LEGAL_NAME, REFERRAL_FEE_RATE

portal_bp = Blueprint("portal", __name__)

logger = logging.getLogger(__name__)

RELATIONSHIP_OPTIONS = [
    "Family",
    "Friend",
    "Colleague",
    "Neighbour",
    "Business Partner",
    "Other",
]

GENERIC_ERROR = "Something went wrong. Please try again."


def normalize_relationship(value):
    """Map free-form input onto RELATIONSHIP_OPTIONS ("Other" if unknown)."""
    value = (value or "").strip()
    return value if value in RELATIONSHIP_OPTIONS else "Other"


def get_repository():
    return ReferralRepository(db.session, current_app.extensions["schema_probe"])


def _referral_form(form):
    return {
        "leadName": form.get("leadName", ""),
        "leadMobileNumber": form.get("leadMobileNumber", ""),
        "livingRegion": form.get("livingRegion", ""),
        "relationship": normalize_relationship(form.get("relationship")),
    }


def _flash_error(e):
    """ReferralError messages are user-safe; everything else is not."""
    if isinstance(e, ReferralError):
        flash(e.message, "error")
    else:
        logger.exception("Unexpected dashboard action failure")
        flash(GENERIC_ERROR, "error")


# ──────────────────────────────────────────────
# GET /dashboard
# ──────────────────────────────────────────────

@portal_bp.route("/dashboard")
@login_required
def dashboard():
    """Resolve the referral account and list its referrals."""
    referrer = None
    referrals = []
    load_error = None

    try:
        referrer = account_service.find_or_create_referrer_account(
            current_user.identity
        )
        referrals = get_repository().list_referrals(referrer.customer_id)
    except Exception:
        logger.exception(f"Dashboard load failed for {current_user.phone}")
        load_error = (
            "Unable to load your referral account. Check database write "
            "permissions and environment variables."
        )

    display_name = current_user.display_name
    if referrer is not None and referrer.display_name:
        display_name = referrer.display_name

    return render_template(
        "portal/dashboard.html",
        referrer=referrer,
        referrals=referrals,
        display_name=display_name,
        load_error=load_error,
        statuses=REFERRAL_STATUSES,
        relationship_options=RELATIONSHIP_OPTIONS,
        company_name=COMPANY_LEGAL_NAME,
        fee_rate=REFERRAL_FEE_RATE,
    )


# ──────────────────────────────────────────────
# POST /dashboard/referrals
# ──────────────────────────────────────────────

@portal_bp.route("/dashboard/referrals", methods=["POST"])
@login_required
@limiter.limit("20 per minute")
def add_referral():
    """Submit a new lead. Status always starts as Pending."""
    try:
        referrer = account_service.find_or_create_referrer_account(
            current_user.identity
        )
        get_repository().create_referral(referrer, _referral_form(request.form))
        flash("Referral added.", "success")
    except Exception as e:
        _flash_error(e)

    return redirect(url_for("portal.dashboard"))


# ──────────────────────────────────────────────
# POST /dashboard/referrals/edit
# ──────────────────────────────────────────────

@portal_bp.route("/dashboard/referrals/edit", methods=["POST"])
@login_required
@limiter.limit("30 per minute")
def edit_referral():
    """Edit one of the caller's referrals (lead fields + status)."""
    data = _referral_form(request.form)
    data["referralId"] = request.form.get("referralId", "0")
    data["status"] = request.form.get("status", "Pending")

    try:
        referrer = account_service.find_or_create_referrer_account(
            current_user.identity
        )
        get_repository().update_referral(referrer, data)
        flash("Referral updated.", "success")
    except Exception as e:
        _flash_error(e)

    return redirect(url_for("portal.dashboard"))


# ──────────────────────────────────────────────
# POST /dashboard/profile
# ──────────────────────────────────────────────

@portal_bp.route("/dashboard/profile", methods=["POST"])
@login_required
@limiter.limit("10 per minute")
def update_profile():
    """Save display name, picture URL and bank details."""
    try:
        referrer = account_service.find_or_create_referrer_account(
            current_user.identity
        )
        account_service.update_referrer_profile(referrer, {
            "displayName": request.form.get("displayName", ""),
            "profilePicture": request.form.get("profilePicture", ""),
            "bankAccount": request.form.get("bankAccount", ""),
            "bankerName": request.form.get("bankerName", ""),
        })
        flash("Profile updated.", "success")
    except Exception as e:
        _flash_error(e)

    return redirect(url_for("portal.dashboard"))

"""Account service — referrer account reconciliation and payout profile.

Responsible for:
- Finding or creating the one referral account row per verified phone
- Normalizing legacy account rows (old marker, old display name) on login
- Storing the referrer's payout profile in the account row's notes

Referral accounts live in the CRM's shared customer table and are told
apart from real customers by the `remark` marker.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional
from urllib.parse import urlparse

from sqlalchemy import insert, select, text, update

from referral_portal.extensions import db
from referral_portal.models.customer import (
    ACCOUNT_MARKER,
    ACCOUNT_MARKERS,
    Customer,
    dump_notes,
    load_notes,
)
from referral_portal.services.auth_service import normalize_phone
from referral_portal.services.errors import (
    ReferralError,
    ReferralNotFoundError,
    ReferralUnavailableError,
    ReferralValidationError,
)
from referral_portal.services.ids import iso_now, new_id
from referral_portal.services.validation import clean_text, validate_min_lengths

logger = logging.getLogger(__name__)

ACCOUNT_NAME = "Referral"
ACCOUNT_LEAD_SOURCE = "other"
APP_ACTOR = "referral_portal"

PROFILE_RULES = [
    ("displayName", 2, "Display name is required"),
    ("bankAccount", 4, "Bank account number is required"),
    ("bankerName", 2, "Banker name is required"),
]


@dataclass(frozen=True)
class ReferrerAccount:
    customer_id: str
    name: Optional[str]
    phone: Optional[str]
    display_name: Optional[str] = None
    profile_picture: Optional[str] = None
    bank_account: Optional[str] = None
    banker_name: Optional[str] = None


def _account_from_row(customer_id, phone, notes):
    profile = load_notes(notes).get("profile") or {}
    return ReferrerAccount(
        customer_id=customer_id,
        name=ACCOUNT_NAME,
        phone=phone,
        display_name=profile.get("displayName"),
        profile_picture=profile.get("profilePicture"),
        bank_account=profile.get("bankAccount"),
        banker_name=profile.get("bankerName"),
    )


def _lock_phone(phone):
    """Serialize first logins for one phone until the transaction ends.

    PostgreSQL only; the CRM owns the table, so there is no unique
    constraint on phone to lean on.
    """
    if db.session.get_bind().dialect.name != "postgresql":
        return
    db.session.execute(
        text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
        {"key": f"referral_account:{phone}"},
    )


def find_or_create_referrer_account(identity):
    """Return the canonical referral account for a verified identity.

    Looks up the newest row for the phone carrying either account marker.
    An existing row whose name or phone drifted from canonical form is
    normalized in place (which also upgrades the legacy marker). When no
    row exists a new one is inserted.

    Args:
        identity: auth_service.Identity

    Returns:
        ReferrerAccount with canonical name and phone.

    Raises:
        ReferralValidationError: identity has no usable phone.
    """
    phone = normalize_phone(identity.phone)
    if not phone:
        raise ReferralValidationError(
            "Your WhatsApp phone is missing from the auth token."
        )

    try:
        _lock_phone(phone)

        existing = db.session.execute(
            select(Customer.customer_id, Customer.name, Customer.phone, Customer.notes)
            .where(Customer.phone == phone, Customer.remark.in_(ACCOUNT_MARKERS))
            .order_by(Customer.id.desc())
            .limit(1)
        ).first()

        if existing is not None:
            if existing.name != ACCOUNT_NAME or existing.phone != phone:
                db.session.execute(
                    update(Customer)
                    .where(Customer.customer_id == existing.customer_id)
                    .values(
                        name=ACCOUNT_NAME,
                        phone=phone,
                        remark=ACCOUNT_MARKER,
                        updated_by=APP_ACTOR,
                        updated_at=db.func.now(),
                    )
                    .execution_options(synchronize_session=False)
                )
                logger.info(f"Normalized referral account {existing.customer_id}")
            db.session.commit()
            return _account_from_row(existing.customer_id, phone, existing.notes)

        customer_id = new_id("ref")
        notes = dump_notes({
            "kind": "referral_account",
            "source": "whatsapp_auth",
            "createdAt": iso_now(),
        })
        db.session.execute(
            insert(Customer).values(
                customer_id=customer_id,
                name=ACCOUNT_NAME,
                phone=phone,
                lead_source=ACCOUNT_LEAD_SOURCE,
                remark=ACCOUNT_MARKER,
                notes=notes,
                created_by=APP_ACTOR,
                updated_by=APP_ACTOR,
            )
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Created referral account {customer_id}")
    return _account_from_row(customer_id, phone, notes)


def _validate_profile(data):
    cleaned = validate_min_lengths(data, PROFILE_RULES)

    picture = clean_text(data, "profilePicture")
    if picture:
        parsed = urlparse(picture)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ReferralValidationError(
                "Profile picture must be an http(s) URL"
            )
    cleaned["profilePicture"] = picture
    return cleaned


def update_referrer_profile(referrer, data):
    """Save the payout profile (display name, picture, bank details).

    The profile is merged into the account row's notes JSON under
    "profile"; the row's name stays the canonical account label.

    Args:
        referrer: ReferrerAccount of the caller.
        data: Mapping with displayName, profilePicture, bankAccount, bankerName.

    Returns:
        ReferrerAccount with the new profile values.

    Raises:
        ReferralError: validation failure, missing account, or a generic
            "unable to update" when the database write fails.
    """
    profile = _validate_profile(data)

    try:
        row = db.session.execute(
            select(Customer.notes)
            .where(
                Customer.customer_id == referrer.customer_id,
                Customer.remark.in_(ACCOUNT_MARKERS),
            )
            .with_for_update()
        ).first()
        if row is None:
            raise ReferralNotFoundError("Referral account not found.")

        notes = load_notes(row.notes)
        notes["profile"] = dict(profile, updatedAt=iso_now())

        db.session.execute(
            update(Customer)
            .where(Customer.customer_id == referrer.customer_id)
            .values(
                notes=dump_notes(notes),
                updated_by=APP_ACTOR,
                updated_at=db.func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except ReferralError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception(f"Profile update failed for {referrer.customer_id}")
        raise ReferralUnavailableError(
            "Unable to update your profile right now."
        ) from e

    return replace(
        referrer,
        display_name=profile["displayName"],
        profile_picture=profile["profilePicture"] or None,
        bank_account=profile["bankAccount"],
        banker_name=profile["bankerName"],
    )

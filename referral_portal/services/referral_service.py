"""Referral service — create, list and edit a referrer's leads.

Every referral comes with a lead pseudo-customer row in the CRM's customer
table. Both rows are written in one transaction, so a lead without its
referral (or the reverse) is never visible.

Error policy at this boundary:
- ReferralError subclasses propagate with their message unchanged
- anything else is logged, rolled back and raised as
  ReferralUnavailableError with a generic message
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func, insert, select, update

from referral_portal.models.customer import (
    LEAD_SOURCE_REFERRAL,
    PROVENANCE_FLAG,
    Customer,
    dump_notes,
)
from referral_portal.models.referral import Referral
from referral_portal.services.errors import (
    ReferralError,
    ReferralNotFoundError,
    ReferralOwnershipError,
    ReferralUnavailableError,
    ReferralValidationError,
)
from referral_portal.services.ids import iso_now, new_id
from referral_portal.services.validation import (
    clean_text,
    parse_positive_int,
    validate_min_lengths,
)

logger = logging.getLogger(__name__)

REFERRAL_STATUSES = tuple(Referral.STATUSES)
INITIAL_STATUS = "Pending"

REFERRAL_RULES = [
    ("leadName", 2, "Lead name is required"),
    ("leadMobileNumber", 6, "Lead mobile number is required"),
    ("livingRegion", 2, "Living region is required"),
    ("relationship", 2, "Relationship is required"),
]


@dataclass(frozen=True)
class ReferralRow:
    id: int
    bubble_id: str
    lead_name: str
    lead_mobile: Optional[str]
    living_region: Optional[str]
    relationship: Optional[str]
    status: Optional[str]
    lead_customer_id: Optional[str]
    created_at: Optional[datetime]


def validate_referral_input(data):
    """Trim and check the four lead fields. Returns the cleaned dict."""
    return validate_min_lengths(data, REFERRAL_RULES)


def validate_referral_update(data):
    """Lead fields plus referralId (positive int) and status (enum)."""
    cleaned = validate_referral_input(data)
    cleaned["referralId"] = parse_positive_int(
        data.get("referralId"), "Invalid referral id"
    )
    status = clean_text(data, "status")
    if status not in REFERRAL_STATUSES:
        raise ReferralValidationError("Invalid referral status")
    cleaned["status"] = status
    return cleaned


def _lead_metadata(fields, referrer_customer_id, stamp_key):
    return dump_notes({
        "relationship": fields["relationship"],
        "livingRegion": fields["livingRegion"],
        "linkedReferrer": referrer_customer_id,
        PROVENANCE_FLAG: True,
        stamp_key: iso_now(),
    })


class ReferralRepository:
    """Referral reads and writes for one unit of work.

    Args:
        session: SQLAlchemy session (db.session inside a request).
        probe: CustomerSchemaProbe deciding whether writes may name
            customer.linked_referrer.
    """

    def __init__(self, session, probe):
        self.session = session
        self.probe = probe

    def _capabilities(self):
        return self.probe.get(self.session.connection())

    # ──────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────

    def list_referrals(self, referrer_customer_id):
        """All referrals of one referrer, newest first.

        The living region comes from the lead row (LEFT JOIN), so a
        referral whose lead row is gone still lists with region None.
        """
        rows = self.session.execute(
            select(
                Referral.id,
                Referral.bubble_id,
                Referral.name,
                Referral.mobile_number,
                Customer.state,
                Referral.relationship,
                Referral.status,
                Referral.linked_invoice,
                Referral.created_at,
            )
            .outerjoin(Customer, Customer.customer_id == Referral.linked_invoice)
            .where(Referral.linked_customer_profile == referrer_customer_id)
            .order_by(Referral.created_at.desc(), Referral.id.desc())
        ).all()

        return [
            ReferralRow(
                id=row.id,
                bubble_id=row.bubble_id,
                lead_name=row.name,
                lead_mobile=row.mobile_number,
                living_region=row.state,
                relationship=row.relationship,
                status=row.status,
                lead_customer_id=row.linked_invoice,
                created_at=row.created_at,
            )
            for row in rows
        ]

    # ──────────────────────────────────────────────
    # Writes
    # ──────────────────────────────────────────────

    def create_referral(self, referrer, data):
        """Insert a lead customer row and its referral, status Pending.

        Any status in `data` is ignored: new referrals always start Pending.

        Returns:
            The new referral's bubble id.

        Raises:
            ReferralValidationError: before any write.
            ReferralUnavailableError: the transaction failed and was rolled back.
        """
        fields = validate_referral_input(data)

        try:
            capabilities = self._capabilities()
            lead_customer_id = new_id("cust")
            bubble_id = new_id("reflead")

            lead_values = {
                "customer_id": lead_customer_id,
                "name": fields["leadName"],
                "phone": fields["leadMobileNumber"],
                "state": fields["livingRegion"],
                "lead_source": LEAD_SOURCE_REFERRAL,
                "remark": fields["relationship"],
                "notes": _lead_metadata(fields, referrer.customer_id, "createdAt"),
                "created_by": referrer.customer_id,
                "updated_by": referrer.customer_id,
            }
            if capabilities.has_linked_referrer:
                lead_values["linked_referrer"] = referrer.customer_id

            self.session.execute(insert(Customer).values(**lead_values))
            self.session.execute(
                insert(Referral).values(
                    bubble_id=bubble_id,
                    linked_customer_profile=referrer.customer_id,
                    name=fields["leadName"],
                    relationship=fields["relationship"],
                    mobile_number=fields["leadMobileNumber"],
                    status=INITIAL_STATUS,
                    linked_invoice=lead_customer_id,
                )
            )
            self.session.commit()
        except ReferralError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            logger.exception(f"Referral create failed for {referrer.customer_id}")
            raise ReferralUnavailableError(
                "Unable to add this referral right now."
            ) from e

        logger.info(
            f"Referral {bubble_id} created by {referrer.customer_id} "
            f"(lead {lead_customer_id})"
        )
        return bubble_id

    def update_referral(self, referrer, data):
        """Edit a referral (lead fields + status) and sync its lead row.

        The referral row is locked FOR UPDATE and its owner checked inside
        the same transaction before anything is written. The lead row is
        only touched when it still passes Customer.owned_by_referrer; a
        lead reassigned in the CRM is left alone without failing the edit.

        Raises:
            ReferralValidationError: before any write.
            ReferralNotFoundError: no referral with that id.
            ReferralOwnershipError: the referral belongs to someone else.
            ReferralUnavailableError: the transaction failed and was rolled back.
        """
        fields = validate_referral_update(data)
        referral_id = fields["referralId"]

        try:
            existing = self.session.execute(
                select(
                    Referral.id,
                    Referral.linked_customer_profile,
                    Referral.linked_invoice,
                )
                .where(Referral.id == referral_id)
                .with_for_update()
            ).first()

            if existing is None:
                raise ReferralNotFoundError("Referral record not found.")

            if existing.linked_customer_profile != referrer.customer_id:
                logger.warning(
                    f"Referrer {referrer.customer_id} tried to edit referral "
                    f"{referral_id} owned by {existing.linked_customer_profile}"
                )
                raise ReferralOwnershipError("You can only edit your own referrals.")

            self.session.execute(
                update(Referral)
                .where(Referral.id == referral_id)
                .values(
                    name=fields["leadName"],
                    mobile_number=fields["leadMobileNumber"],
                    relationship=fields["relationship"],
                    status=fields["status"],
                    updated_at=func.now(),
                )
                .execution_options(synchronize_session=False)
            )

            if existing.linked_invoice:
                self._update_lead_record(
                    existing.linked_invoice, referrer.customer_id, fields
                )

            self.session.commit()
        except ReferralError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            logger.exception(
                f"Referral update failed for {referrer.customer_id} (id {referral_id})"
            )
            raise ReferralUnavailableError(
                "Unable to update this referral right now."
            ) from e

        logger.info(
            f"Referral {referral_id} updated by {referrer.customer_id} "
            f"(status {fields['status']})"
        )

    def _update_lead_record(self, lead_customer_id, referrer_customer_id, fields):
        """Mirror the edited fields onto the lead row if the referrer owns it.

        Returns the number of lead rows changed (0 or 1).
        """
        capabilities = self._capabilities()

        values = {
            "name": fields["leadName"],
            "phone": fields["leadMobileNumber"],
            "state": fields["livingRegion"],
            "remark": fields["relationship"],
            "notes": _lead_metadata(fields, referrer_customer_id, "updatedAt"),
            "updated_by": referrer_customer_id,
            "updated_at": func.now(),
        }
        if capabilities.has_linked_referrer:
            values["linked_referrer"] = referrer_customer_id

        result = self.session.execute(
            update(Customer)
            .where(
                Customer.customer_id == lead_customer_id,
                Customer.owned_by_referrer(referrer_customer_id),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.info(
                f"Lead {lead_customer_id} no longer owned by {referrer_customer_id}; "
                "left unchanged"
            )
        return result.rowcount

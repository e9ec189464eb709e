"""Customer model (shared CRM table).

The `customer` table belongs to the CRM. The portal stores two kinds of rows
in it:

- referral accounts: one per referrer phone, tagged by `remark`
- lead records: one per referral, tagged by `lead_source` and JSON `notes`

`linked_referrer` only exists on newer CRM schemas. It is deferred with
raiseload so no ORM load ever selects it; writes add it explicitly after
asking the schema probe.
"""

import json

from sqlalchemy import and_, or_
from sqlalchemy.orm import deferred

from referral_portal.extensions import db

# remark markers for referral accounts; lookups accept both, writes use the first
ACCOUNT_MARKER = "REFERRAL_ACCOUNT"
LEGACY_ACCOUNT_MARKER = "REFERRER_ACCOUNT"
ACCOUNT_MARKERS = (ACCOUNT_MARKER, LEGACY_ACCOUNT_MARKER)

LEAD_SOURCE_REFERRAL = "referral"
PROVENANCE_FLAG = "syncedFromReferralPortal"


def dump_notes(data):
    """Serialize a notes blob in the compact form the ownership match expects."""
    return json.dumps(data, separators=(",", ":"))


def load_notes(raw):
    """Parse a notes blob; free text written by the CRM decodes to {}."""
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class Customer(db.Model):
    __tablename__ = "customer"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    customer_id = db.Column(db.String(64), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(50), nullable=True, index=True)
    state = db.Column(db.String(255), nullable=True)  # living region for leads
    lead_source = db.Column(db.String(50), nullable=True)  # referral | other | ...
    remark = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)  # JSON for portal-written rows
    linked_referrer = deferred(
        db.Column(db.String(64), nullable=True), raiseload=True
    )
    created_by = db.Column(db.String(64), nullable=True)
    updated_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    @classmethod
    def owned_by_referrer(cls, referrer_customer_id):
        """WHERE clause matching lead rows that belong to a referrer.

        The CRM table has no dedicated foreign key back to the referrer on
        older schemas, so ownership is the conjunction of:
        - the row is a portal lead (lead_source or provenance flag), and
        - the referrer created it, or its notes name the referrer.
        """
        linked = dump_notes({"linkedReferrer": referrer_customer_id})[1:-1]
        provenance = dump_notes({PROVENANCE_FLAG: True})[1:-1]
        return and_(
            or_(
                cls.lead_source == LEAD_SOURCE_REFERRAL,
                cls.notes.contains(provenance, autoescape=True),
            ),
            or_(
                cls.created_by == referrer_customer_id,
                cls.notes.contains(linked, autoescape=True),
            ),
        )

    def __repr__(self):
        return f"<Customer {self.customer_id} ({self.remark or self.lead_source})>"

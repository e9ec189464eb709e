"""Referral model (shared CRM table).

One row per lead a referrer submits. The lead's living region is not stored
here: it lives on the linked lead customer row (`linked_invoice` -> state).
"""

from referral_portal.extensions import db


class Referral(db.Model):
    __tablename__ = "referral"

    # -- Pipeline statuses, in display order --
    STATUSES = [
        "Pending",
        "Qualified",
        "Proposal",
        "Won",
        "Lost",
    ]

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    bubble_id = db.Column(db.String(64), unique=True, nullable=False)  # CRM correlation id
    linked_customer_profile = db.Column(
        db.String(64), db.ForeignKey("customer.customer_id"), nullable=False, index=True
    )  # the referrer account, never reassigned
    name = db.Column(db.String(255), nullable=False)
    relationship = db.Column(db.String(255), nullable=True)
    mobile_number = db.Column(db.String(50), nullable=True)
    status = db.Column(db.String(50), default="Pending", nullable=True)
    linked_invoice = db.Column(
        db.String(64), db.ForeignKey("customer.customer_id"), nullable=True
    )  # the lead pseudo-customer
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<Referral {self.bubble_id} ({self.status})>"

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Shift(db.Model):
    """
    Cash-register shift.

    LIFECYCLE:
    - open: cashier is selling, cash payments accumulate against the drawer
    - closed: cash counted, expected cash and variance frozen

    Only one shift may be open at a time. Once closed it is never reopened.
    """
    __tablename__ = "shifts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(16), nullable=False, default="open", index=True)  # open, closed

    cashier_name = db.Column(db.String(128), nullable=True)
    register_number = db.Column(db.String(32), nullable=True)

    # Cash tracking (all amounts in cents)
    opening_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    counted_cash_cents = db.Column(db.Integer, nullable=True)
    expected_cash_cents = db.Column(db.Integer, nullable=True)  # opening + cash payments while open
    variance_cents = db.Column(db.Integer, nullable=True)  # counted - expected

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    close_notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "cashier_name": self.cashier_name,
            "register_number": self.register_number,
            "opening_cash_cents": self.opening_cash_cents,
            "counted_cash_cents": self.counted_cash_cents,
            "expected_cash_cents": self.expected_cash_cents,
            "variance_cents": self.variance_cents,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "close_notes": self.close_notes,
            "version_id": self.version_id,
        }

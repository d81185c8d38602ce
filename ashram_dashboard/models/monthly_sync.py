from ashram_dashboard import db
from datetime import datetime

PAID_MARK = '✓'


class MonthlySync(db.Model):
    """One month's settlement state for one bhakt"""

    __tablename__ = 'monthly_sync'
    __table_args__ = (
        db.UniqueConstraint('bhakt_id', 'year', 'month', name='uq_monthly_sync_bhakt_period'),
    )

    id = db.Column(db.Integer, primary_key=True)
    bhakt_id = db.Column(db.Integer, db.ForeignKey('bhakt.id'), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False, index=True)
    month = db.Column(db.Integer, nullable=False)

    # Uploaded cell value: null, a number or an opaque string
    donated = db.Column(db.JSON)
    is_paid = db.Column(db.Boolean, default=False, nullable=False)

    payment_source = db.Column(db.String(50))
    transaction_id = db.Column(db.String(100))
    notes = db.Column(db.Text)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<MonthlySync {self.bhakt_id} {self.year}-{self.month:02d}: {self.donated!r}>'

    @property
    def key(self):
        return (self.bhakt_id, self.year, self.month)

    def set_donated(self, value):
        """Store an uploaded value; any non-empty value marks the month paid"""
        self.donated = value
        self.is_paid = value is not None

    @staticmethod
    def cell_value(donated, is_paid):
        """Matrix cell for a stored month: the donated value, else ✓ when paid"""
        if donated is not None:
            return donated
        return PAID_MARK if is_paid else None

    @property
    def display_value(self):
        return self.cell_value(self.donated, self.is_paid)

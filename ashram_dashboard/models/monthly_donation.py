from ashram_dashboard import db


class MonthlyDonation(db.Model):
    __tablename__ = 'monthly_donations'
    __table_args__ = (
        db.UniqueConstraint('bhakt_id', 'year', 'month', name='uq_monthly_donation_bhakt_period'),
    )

    id = db.Column(db.Integer, primary_key=True)
    bhakt_id = db.Column(db.Integer, db.ForeignKey('bhakt.id'), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    donated = db.Column(db.Boolean, default=False, nullable=False)
    amount = db.Column(db.Numeric(10, 2))
    donation_date = db.Column(db.Date)
    notes = db.Column(db.Text)

    def __repr__(self):
        return f'<MonthlyDonation {self.bhakt_id} {self.year}-{self.month:02d}>'

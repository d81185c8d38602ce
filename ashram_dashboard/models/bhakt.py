from ashram_dashboard import db
from datetime import datetime


def plain_amount(value):
    """Numeric columns come back as Decimal; the API speaks JSON numbers"""
    if value is None:
        return None
    as_float = float(value)
    return int(as_float) if as_float.is_integer() else as_float


class Bhakt(db.Model):
    __tablename__ = 'bhakt'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False, index=True)
    alias_name = db.Column(db.String(150))
    email = db.Column(db.String(150))
    phone_number = db.Column(db.String(30))
    address = db.Column(db.Text)

    # Donation details
    monthly_donation_amount = db.Column(db.Numeric(10, 2))
    carry_forward_balance = db.Column(db.Numeric(10, 2))
    last_payment_date = db.Column(db.Date)
    payment_status = db.Column(db.String(50))
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    monthly_sync = db.relationship('MonthlySync', backref='bhakt', lazy=True,
                                   cascade='all, delete-orphan')
    monthly_donations = db.relationship('MonthlyDonation', backref='bhakt', lazy=True,
                                        cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Bhakt {self.id}: {self.name}>'

    @property
    def monthly_donation_formatted(self):
        """Monthly donation in rupees for emails and receipts"""
        return f"₹{plain_amount(self.monthly_donation_amount) or 0}"

    @property
    def carry_forward_formatted(self):
        return f"₹{plain_amount(self.carry_forward_balance) or 0}"

    @property
    def last_payment_formatted(self):
        """Last payment date as DD/MM/YYYY (en-IN), or N/A"""
        if not self.last_payment_date:
            return 'N/A'
        return self.last_payment_date.strftime('%d/%m/%Y')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'alias_name': self.alias_name,
            'email': self.email,
            'phone_number': self.phone_number,
            'address': self.address,
            'monthly_donation_amount': plain_amount(self.monthly_donation_amount),
            'carry_forward_balance': plain_amount(self.carry_forward_balance),
            'last_payment_date': self.last_payment_date.isoformat() if self.last_payment_date else None,
            'payment_status': self.payment_status,
            'is_active': self.is_active,
        }

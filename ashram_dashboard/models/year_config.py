from ashram_dashboard import db
from datetime import datetime


class YearConfig(db.Model):
    __tablename__ = 'year_config'

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, unique=True, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<YearConfig {self.year}{"" if self.is_active else " (inactive)"}>'

    def to_dict(self):
        return {'year': self.year, 'is_active': self.is_active}

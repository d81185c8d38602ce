"""Shared fixtures: an app on in-memory SQLite, a client, seeded bhakts and fake SMTP."""

from datetime import date
from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import Workbook

from ashram_dashboard import create_app, db as _db
from ashram_dashboard.models import Bhakt, MonthlySync, YearConfig


@pytest.fixture
def app(tmp_path):
    app = create_app('testing')
    app.config['BACKUP_DIR'] = str(tmp_path / 'backups')
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def seeded(db):
    """Two bhakts, year 2026 active, one valued month and one paid-only month"""
    ravi = Bhakt(id=7, name='Ravi Kumar', email='ravi@example.org',
                 monthly_donation_amount=Decimal('500'), carry_forward_balance=Decimal('0'),
                 last_payment_date=date(2026, 1, 15), payment_status='Paid till Jan 2026')
    sita = Bhakt(id=8, name='Sita Sharma', monthly_donation_amount=Decimal('300'))
    db.session.add_all([ravi, sita, YearConfig(year=2026, is_active=True)])
    db.session.commit()

    january = MonthlySync(bhakt_id=7, year=2026, month=1)
    january.set_donated(500)
    db.session.add(january)
    db.session.add(MonthlySync(bhakt_id=8, year=2026, month=2, is_paid=True))
    db.session.commit()
    return {'ravi': ravi, 'sita': sita}


@pytest.fixture
def admin_headers(app):
    app.config['ADMIN_SECRET'] = 'admin-secret'
    return {'Authorization': 'Bearer admin-secret'}


@pytest.fixture
def make_xlsx():
    """Workbook bytes with `rows` on the first sheet"""
    def build(rows):
        wb = Workbook()
        ws = wb.active
        for row in rows:
            ws.append(row)
        buffer = BytesIO()
        wb.save(buffer)
        return buffer.getvalue()
    return build


class FakeSMTP:
    """Records messages; fails the first `failures` deliveries"""

    sent = []
    failures = 0
    instances = 0

    def __init__(self, host, port, timeout=None):
        FakeSMTP.instances += 1
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        pass

    def send_message(self, message):
        import smtplib
        if FakeSMTP.failures > 0:
            FakeSMTP.failures -= 1
            raise smtplib.SMTPServerDisconnected('connection dropped')
        FakeSMTP.sent.append(message)

    @classmethod
    def reset(cls, failures=0):
        cls.sent = []
        cls.failures = failures
        cls.instances = 0


@pytest.fixture
def fake_smtp(app, monkeypatch):
    from ashram_dashboard.services import mail_service

    FakeSMTP.reset()
    app.config['SMTP_HOST'] = 'smtp.test'
    monkeypatch.setattr(mail_service.smtplib, 'SMTP', FakeSMTP)
    monkeypatch.setattr(mail_service.time, 'sleep', lambda seconds: None)
    return FakeSMTP

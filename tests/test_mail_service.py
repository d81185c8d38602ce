"""Tests for status mails, bulk throttling/retry and the weekly report."""

import pytest

from ashram_dashboard.errors import InvalidRequestError, MailError
from ashram_dashboard.models import Bhakt
from ashram_dashboard.services.mail_service import MailService, status_body


def _service(fake_smtp, sleeps=None, **kwargs):
    options = dict(host='smtp.test', from_address='ashram@example.org', from_name='Jagatbandhu Ashram',
                   send_delay_ms=2000, smtp_factory=fake_smtp,
                   sleep=(sleeps.append if sleeps is not None else (lambda s: None)))
    options.update(kwargs)
    return MailService(**options)


def _bhakts(count):
    return [Bhakt(id=100 + i, name=f'Bhakt {i}', email=f'b{i}@example.org', is_active=True)
            for i in range(count)]


def test_status_body_lines(seeded):
    body = status_body(seeded['ravi'])

    assert body.splitlines() == [
        'Jai JagatBandhu Hari',
        'Here is your Bhiksha Status for Jagatbandhu Ashram',
        '',
        'Name: Ravi Kumar',
        'Monthly Donation: ₹500',
        'Last Payment Date: 15/01/2026',
        'Extra Balance: ₹0',
        'Status: Paid till Jan 2026',
    ]


def test_status_body_defaults(seeded):
    body = status_body(seeded['sita'])

    assert 'Last Payment Date: N/A' in body
    assert 'Status: Unknown' in body


def test_send_bhakt_status(seeded, fake_smtp):
    _service(fake_smtp).send_bhakt_status(seeded['ravi'])

    message = fake_smtp.sent[0]
    assert message['To'] == 'ravi@example.org'
    assert message['Subject'] == 'Bhiksha Status - Ravi Kumar'
    assert 'Jagatbandhu Ashram' in message['From']


def test_send_bhakt_status_requires_email(seeded, fake_smtp):
    with pytest.raises(InvalidRequestError, match='no email'):
        _service(fake_smtp).send_bhakt_status(seeded['sita'])


def test_bulk_send_caps_per_run(fake_smtp):
    sent = _service(fake_smtp, max_sends_per_run=3, send_delay_ms=0).send_bulk_status(_bhakts(5))

    assert sent == 3
    assert len(fake_smtp.sent) == 3


def test_bulk_send_skips_inactive_and_missing_email(fake_smtp):
    bhakts = _bhakts(2)
    bhakts.append(Bhakt(id=200, name='No Mail', email=None, is_active=True))
    bhakts.append(Bhakt(id=201, name='Inactive', email='x@example.org', is_active=False))

    assert _service(fake_smtp, send_delay_ms=0).send_bulk_status(bhakts) == 2


def test_bulk_send_throttles_between_recipients(fake_smtp):
    sleeps = []

    _service(fake_smtp, sleeps=sleeps).send_bulk_status(_bhakts(3))

    assert sleeps == [2.0, 2.0]


def test_bulk_send_retries_with_backoff(fake_smtp):
    fake_smtp.reset(failures=2)
    sleeps = []

    sent = _service(fake_smtp, sleeps=sleeps, send_delay_ms=0).send_bulk_status(_bhakts(1))

    assert sent == 1
    assert sleeps == [2, 4]


def test_bulk_send_gives_up_after_three_attempts(fake_smtp):
    fake_smtp.reset(failures=3)
    sleeps = []

    sent = _service(fake_smtp, sleeps=sleeps, send_delay_ms=0).send_bulk_status(_bhakts(2))

    # First recipient exhausts its attempts, second goes through
    assert sent == 1
    assert sleeps == [2, 4]
    assert fake_smtp.sent[0]['To'] == 'b1@example.org'


def test_weekly_report_attaches_workbook(fake_smtp):
    recipients = _service(fake_smtp).send_weekly_report(
        ['a@example.org', 'b@example.org'], b'xlsx-bytes', 'MonthlySync_Matrix_18-10-2026.xlsx'
    )

    assert recipients == ['a@example.org', 'b@example.org']
    message = fake_smtp.sent[0]
    assert message['To'] == 'a@example.org, b@example.org'
    attachment = next(message.iter_attachments())
    assert attachment.get_filename() == 'MonthlySync_Matrix_18-10-2026.xlsx'
    assert attachment.get_content() == b'xlsx-bytes'


def test_weekly_report_requires_recipients(fake_smtp):
    with pytest.raises(InvalidRequestError, match='WEEKLY_REPORT_RECIPIENTS'):
        _service(fake_smtp).send_weekly_report([], b'x', 'm.xlsx')


def test_missing_smtp_host_is_an_error(seeded):
    with pytest.raises(MailError, match='SMTP_HOST'):
        MailService(host=None).send_bhakt_status(seeded['ravi'])


def test_send_bhakt_status_endpoint(client, seeded, fake_smtp):
    response = client.post('/api/send-bhakt-status', json={'bhakt_id': 7})

    assert response.status_code == 200
    assert response.get_json() == {'success': True}
    assert fake_smtp.sent[0]['To'] == 'ravi@example.org'


@pytest.mark.parametrize('payload, status', [
    ({}, 400),
    ({'bhakt_id': 999}, 404),
    ({'bhakt_id': 8}, 400),
])
def test_send_bhakt_status_endpoint_errors(client, seeded, fake_smtp, payload, status):
    assert client.post('/api/send-bhakt-status', json=payload).status_code == status


def test_send_bhiksha_status_endpoint(client, seeded, fake_smtp):
    response = client.post('/api/send-bhiksha-status')

    assert response.status_code == 200
    assert response.get_json() == {'success': True, 'sent': 1}


def test_weekly_report_endpoint(client, app, seeded, fake_smtp):
    app.config['WEEKLY_REPORT_RECIPIENTS'] = ['office@example.org']

    response = client.get('/api/weekly-report')

    assert response.status_code == 200
    assert response.get_json()['recipients'] == ['office@example.org']
    assert fake_smtp.sent[0]['Subject'].startswith('Weekly MonthlySync Matrix - ')


def test_weekly_report_endpoint_without_recipients(client, seeded, fake_smtp):
    response = client.get('/api/weekly-report')

    assert response.status_code == 400
    assert 'WEEKLY_REPORT_RECIPIENTS' in response.get_json()['error']

import logging
import smtplib
import time
from datetime import date
from email.message import EmailMessage
from email.utils import formataddr

from ashram_dashboard.errors import InvalidRequestError, MailError

XLSX_MAIN_TYPE = 'application'
XLSX_SUB_TYPE = 'vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def status_body(bhakt):
    """Plain-text Bhiksha status for one bhakt"""
    return '\n'.join([
        'Jai JagatBandhu Hari',
        'Here is your Bhiksha Status for Jagatbandhu Ashram',
        '',
        f'Name: {bhakt.name or "Bhakt"}',
        f'Monthly Donation: {bhakt.monthly_donation_formatted}',
        f'Last Payment Date: {bhakt.last_payment_formatted}',
        f'Extra Balance: {bhakt.carry_forward_formatted}',
        f'Status: {bhakt.payment_status or "Unknown"}',
    ])


class MailService:
    """SMTP delivery of status mails and the weekly matrix report"""

    MAX_ATTEMPTS = 3
    MAX_BACKOFF_SECONDS = 30

    def __init__(self, host=None, port=587, secure=False, user=None, password=None,
                 from_address=None, from_name='', max_sends_per_run=70, send_delay_ms=2000,
                 smtp_factory=None, sleep=None):
        self.host = host
        self.port = port
        self.secure = secure
        self.user = user
        self.password = password
        self.from_address = from_address or user
        self.from_name = from_name or ''
        self.max_sends_per_run = max_sends_per_run
        self.send_delay_ms = send_delay_ms
        self.smtp_factory = smtp_factory or (smtplib.SMTP_SSL if secure else smtplib.SMTP)
        self.sleep = sleep or time.sleep
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config, **kwargs):
        return cls(
            host=config.get('SMTP_HOST'),
            port=config.get('SMTP_PORT', 587),
            secure=config.get('SMTP_SECURE', False),
            user=config.get('SMTP_USER'),
            password=config.get('SMTP_PASS'),
            from_address=config.get('SMTP_FROM'),
            from_name=config.get('SMTP_FROM_NAME', ''),
            max_sends_per_run=config.get('MAX_SENDS_PER_RUN', 70),
            send_delay_ms=config.get('SEND_DELAY_MS', 2000),
            **kwargs
        )

    @property
    def from_header(self):
        if self.from_name:
            return formataddr((self.from_name, self.from_address))
        return self.from_address

    def _deliver(self, message):
        if not self.host:
            raise MailError('SMTP_HOST is not configured')
        with self.smtp_factory(self.host, self.port, timeout=30) as server:
            if not self.secure:
                server.starttls()
            if self.user:
                server.login(self.user, self.password)
            server.send_message(message)

    def _status_message(self, bhakt):
        message = EmailMessage()
        message['From'] = self.from_header
        message['To'] = bhakt.email
        message['Subject'] = f'Bhiksha Status - {bhakt.name or "Bhakt"}'
        message.set_content(status_body(bhakt))
        return message

    def send_bhakt_status(self, bhakt):
        if not bhakt.email:
            raise InvalidRequestError('Bhakt has no email')
        try:
            self._deliver(self._status_message(bhakt))
        except (smtplib.SMTPException, OSError) as e:
            raise MailError(f'Could not send status to {bhakt.email}: {e}') from e
        self.logger.info(f"Sent Bhiksha status to bhakt {bhakt.id} <{bhakt.email}>")

    def _send_with_retry(self, message, recipient):
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            try:
                self._deliver(message)
                return True
            except (smtplib.SMTPException, OSError) as e:
                self.logger.warning(f"Send attempt {attempt} failed for {recipient}: {e}")
                if attempt < self.MAX_ATTEMPTS:
                    self.sleep(min(self.MAX_BACKOFF_SECONDS, 2 ** attempt))
        self.logger.warning(f"Giving up sending to {recipient}")
        return False

    def send_bulk_status(self, bhakts):
        """Status mail to every active bhakt with an email; returns the number sent"""
        recipients = [b for b in bhakts if b.is_active and b.email]
        sent = 0
        for index, bhakt in enumerate(recipients):
            if sent >= self.max_sends_per_run:
                self.logger.info(f"Reached MAX_SENDS_PER_RUN ({self.max_sends_per_run}); "
                                 f"{len(recipients) - index} left for the next run")
                break
            if self._send_with_retry(self._status_message(bhakt), bhakt.email):
                sent += 1
            if self.send_delay_ms and index < len(recipients) - 1 and sent < self.max_sends_per_run:
                self.sleep(self.send_delay_ms / 1000.0)

        self.logger.info(f"Bulk Bhiksha status: sent {sent} of {len(recipients)}")
        return sent

    def send_weekly_report(self, recipients, workbook, filename, today=None):
        if not recipients:
            raise InvalidRequestError('No recipients configured in WEEKLY_REPORT_RECIPIENTS')

        today = today or date.today()
        message = EmailMessage()
        message['From'] = self.from_header
        message['To'] = ', '.join(recipients)
        message['Subject'] = f'Weekly MonthlySync Matrix - {today:%d/%m/%Y}'
        message.set_content('Attached is the weekly MonthlySync matrix backup.')
        message.add_attachment(workbook, maintype=XLSX_MAIN_TYPE, subtype=XLSX_SUB_TYPE, filename=filename)

        try:
            self._deliver(message)
        except (smtplib.SMTPException, OSError) as e:
            raise MailError(f'Weekly report failed: {e}') from e
        self.logger.info(f"Weekly report sent to {len(recipients)} recipients")
        return recipients

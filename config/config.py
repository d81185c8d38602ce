import os
from dotenv import load_dotenv

load_dotenv()


def _env_list(name):
    raw = os.environ.get(name, '')
    return [item.strip() for item in raw.split(',') if item.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///ashram.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    TESTING = False

    # Uploads (matrix sheets can be large)
    MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH', 50 * 1024 * 1024))

    # Password gate
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD')
    ADMIN_SECRET = os.environ.get('ADMIN_SECRET')
    CRON_SECRET = os.environ.get('CRON_SECRET')
    AUTH_TOKEN_MAX_AGE = int(os.environ.get('AUTH_TOKEN_MAX_AGE', 24 * 60 * 60))

    # SMTP
    SMTP_HOST = os.environ.get('SMTP_HOST')
    SMTP_PORT = int(os.environ.get('SMTP_PORT', 587))
    SMTP_SECURE = os.environ.get('SMTP_SECURE', 'false').lower() == 'true'
    SMTP_USER = os.environ.get('SMTP_USER')
    SMTP_PASS = os.environ.get('SMTP_PASS')
    SMTP_FROM = os.environ.get('SMTP_FROM') or os.environ.get('SMTP_USER')
    SMTP_FROM_NAME = os.environ.get('SMTP_FROM_NAME') or os.environ.get('EMAIL_FROM_NAME', '')
    MAX_SENDS_PER_RUN = int(os.environ.get('MAX_SENDS_PER_RUN', 70))
    SEND_DELAY_MS = int(os.environ.get('SEND_DELAY_MS', 2000))
    WEEKLY_REPORT_RECIPIENTS = _env_list('WEEKLY_REPORT_RECIPIENTS')

    # Backups
    BACKUP_STORAGE = os.environ.get('BACKUP_STORAGE', 'local')
    BACKUP_DIR = os.environ.get('BACKUP_DIR') or os.path.join(os.getcwd(), 'backups')

    # Google Drive
    GOOGLE_CLIENT_ID = os.environ.get('GOOGLE_CLIENT_ID')
    GOOGLE_CLIENT_SECRET = os.environ.get('GOOGLE_CLIENT_SECRET')
    GOOGLE_REFRESH_TOKEN = os.environ.get('GOOGLE_REFRESH_TOKEN')
    GDRIVE_ROOT_FOLDER = os.environ.get('GDRIVE_ROOT_FOLDER', 'ashramapp')

    # Receipts
    ASHRAM_NAME = os.environ.get('ASHRAM_NAME', 'Jagatbandhu Ashram')
    ASHRAM_ADDRESS = os.environ.get('ASHRAM_ADDRESS', '')

    LOG_DIR = os.environ.get('LOG_DIR')

    @staticmethod
    def init_app(app):
        pass


class DevelopmentConfig(Config):
    DEBUG = True


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SECRET_KEY = 'test-secret-key'
    ADMIN_PASSWORD = 'test-password'
    ADMIN_SECRET = None
    CRON_SECRET = None
    SEND_DELAY_MS = 0
    BACKUP_STORAGE = 'local'


class ProductionConfig(Config):
    DEBUG = False

    @staticmethod
    def init_app(app):
        if app.config['SECRET_KEY'] == 'dev-secret-key':
            app.logger.warning("SECRET_KEY is not set; using the development key")


config_by_name = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig,
}

"""
Logging Configuration for the Ashram Dashboard
"""

import os
import logging
import logging.handlers


def setup_logging(app):
    """Configure rotating file logs plus console output for the dashboard"""

    log_level = logging.DEBUG if app.config.get('DEBUG') else logging.INFO

    # Remove default Flask handlers
    for handler in list(app.logger.handlers):
        app.logger.removeHandler(handler)

    detailed_formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s '
        '[in %(pathname)s:%(lineno)d]'
    )
    simple_formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s]: %(message)s'
    )

    # Console handler for immediate monitoring
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(simple_formatter)
    app.logger.addHandler(console_handler)

    # Service modules log through their own module loggers
    package_logger = logging.getLogger('ashram_dashboard')
    package_logger.setLevel(log_level)

    if app.config.get('TESTING'):
        app.logger.setLevel(log_level)
        return app.logger

    log_dir = app.config.get('LOG_DIR') or os.path.join(app.root_path, '..', 'logs')
    os.makedirs(log_dir, exist_ok=True)

    # Application log file with rotation
    app_handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, 'ashram_dashboard.log'),
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5
    )
    app_handler.setLevel(log_level)
    app_handler.setFormatter(detailed_formatter)

    # Error log file with rotation
    error_handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, 'ashram_dashboard_errors.log'),
        maxBytes=10*1024*1024,
        backupCount=3
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(detailed_formatter)

    # Access log file for monitoring
    access_handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, 'ashram_dashboard_access.log'),
        maxBytes=10*1024*1024,
        backupCount=3
    )
    access_handler.setLevel(logging.INFO)
    access_handler.setFormatter(simple_formatter)

    app.logger.addHandler(app_handler)
    app.logger.addHandler(error_handler)
    package_logger.addHandler(app_handler)
    package_logger.addHandler(error_handler)
    app.logger.setLevel(log_level)

    access_logger = logging.getLogger('ashram_dashboard.access')
    access_logger.addHandler(access_handler)
    access_logger.setLevel(logging.INFO)
    access_logger.propagate = False

    app.logger.info(f"Ashram Dashboard logging initialized - Level: {logging.getLevelName(log_level)}")
    app.logger.info(f"Log directory: {log_dir}")

    return app.logger


def log_request(request, response):
    """Log HTTP requests for monitoring"""
    access_logger = logging.getLogger('ashram_dashboard.access')

    access_logger.info(
        f"{request.remote_addr} - {request.method} {request.url} - "
        f"{response.status_code} - {request.user_agent}"
    )


def log_security_event(app, event_type, details):
    """Log security-related events"""
    app.logger.warning(f"SECURITY EVENT - {event_type}: {details}")

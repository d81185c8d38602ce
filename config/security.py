"""
Security Configuration for the Ashram Dashboard
"""

import os
from flask import request, make_response
from werkzeug.middleware.proxy_fix import ProxyFix

from config.logging import log_security_event

CORS_ALLOWED_METHODS = 'GET,OPTIONS,PATCH,DELETE,POST,PUT'
CORS_ALLOWED_HEADERS = (
    'Authorization, Content-Type, X-CSRF-Token, X-Requested-With, Accept, '
    'Accept-Version, Content-Length, Content-MD5, Date, X-Api-Version'
)

SUSPICIOUS_PATTERNS = [
    '../', '..\\', '<script', 'javascript:', 'vbscript:',
    'onload=', 'onerror=', 'eval(', 'expression(',
    'import(', 'require(', 'system(', 'exec(', 'shell_exec'
]


def configure_security(app):
    """Configure security headers, CORS and request screening"""

    # Trust proxy headers (for reverse proxy setups)
    if os.getenv('TRUSTED_PROXIES'):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    @app.before_request
    def answer_preflight():
        """Short-circuit CORS preflight requests for the API"""
        if request.method == 'OPTIONS' and request.path.startswith('/api/'):
            return make_response('', 200)

    @app.before_request
    def log_request_info():
        """Log request information for security monitoring"""
        request_url = str(request.url).lower()
        user_agent = str(request.headers.get('User-Agent', '')).lower()

        # Uploaded workbooks are binary; only screen the URL and agent
        for pattern in SUSPICIOUS_PATTERNS:
            if pattern in request_url or pattern in user_agent:
                log_security_event(
                    app, 'SUSPICIOUS_PATTERN',
                    f"'{pattern}' detected - IP: {request.remote_addr}, URL: {request.url}, "
                    f"User-Agent: {request.headers.get('User-Agent', 'N/A')}"
                )
                break

    @app.after_request
    def add_security_headers(response):
        """Add security and CORS headers to all responses"""
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'

        if request.path.startswith('/api/'):
            response.headers['Access-Control-Allow-Credentials'] = 'true'
            response.headers['Access-Control-Allow-Origin'] = '*'
            response.headers['Access-Control-Allow-Methods'] = CORS_ALLOWED_METHODS
            response.headers['Access-Control-Allow-Headers'] = CORS_ALLOWED_HEADERS

            # Donor data must not be cached
            response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, private'
            response.headers['Pragma'] = 'no-cache'

        return response

    app.logger.info("Security configuration applied successfully")


def get_bearer_token(req):
    """Return the bearer token from the Authorization header, if any"""
    header = req.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return None
    token = header[len('Bearer '):].strip()
    return token or None


class SecurityConfig:
    """Security configuration constants"""

    ALLOWED_UPLOAD_EXTENSIONS = {'xlsx', 'xlsm', 'csv'}

    @staticmethod
    def is_allowed_upload(filename):
        """Check if an uploaded matrix filename has a supported extension"""
        if not filename or '.' not in filename:
            return False
        ext = filename.rsplit('.', 1)[1].lower()
        return ext in SecurityConfig.ALLOWED_UPLOAD_EXTENSIONS

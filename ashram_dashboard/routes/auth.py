import hmac
import logging
import uuid
from collections import namedtuple
from functools import wraps

from flask import Blueprint, current_app, jsonify, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config.logging import log_security_event
from config.security import get_bearer_token

auth_bp = Blueprint('auth', __name__)

logger = logging.getLogger(__name__)

TOKEN_SALT = 'ashram-dashboard-admin'

# Who is calling and how they proved it; built per request and handed to the view
RequestContext = namedtuple('RequestContext', ['actor', 'auth_mode', 'request_id'])


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def issue_token(actor='admin'):
    return _serializer().dumps({'actor': actor})


def verify_token(token):
    """Return the actor of a valid signed token, else None"""
    max_age = current_app.config.get('AUTH_TOKEN_MAX_AGE', 24 * 3600)
    try:
        data = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        logger.info("Rejected expired admin token")
        return None
    except BadSignature:
        return None
    return data.get('actor', 'admin') if isinstance(data, dict) else None


def _matches(token, secret):
    return bool(token and secret) and hmac.compare_digest(token.encode('utf-8'), secret.encode('utf-8'))


def _request_id():
    return request.headers.get('X-Request-ID') or uuid.uuid4().hex


def _admin_context(token):
    if token:
        actor = verify_token(token)
        if actor:
            return RequestContext(actor, 'token', _request_id())
        if _matches(token, current_app.config.get('ADMIN_SECRET')):
            return RequestContext('admin', 'admin-secret', _request_id())
    return None


def _unauthorized():
    log_security_event(current_app, 'UNAUTHORIZED',
                       f"{request.method} {request.path} from {request.remote_addr}")
    return jsonify({'success': False, 'error': 'Unauthorized'}), 401


def require_admin(view):
    """Admin endpoints: signed token or ADMIN_SECRET; open when ADMIN_SECRET is unset"""
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = get_bearer_token(request)
        ctx = _admin_context(token)
        if ctx is None:
            if current_app.config.get('ADMIN_SECRET'):
                return _unauthorized()
            ctx = RequestContext('anonymous', 'open', _request_id())
        return view(ctx, *args, **kwargs)
    return wrapper


def require_cron(view):
    """Scheduled endpoints: CRON_SECRET or an admin credential; open when CRON_SECRET is unset"""
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = get_bearer_token(request)
        if _matches(token, current_app.config.get('CRON_SECRET')):
            ctx = RequestContext('cron', 'cron-secret', _request_id())
        else:
            ctx = _admin_context(token)
        if ctx is None:
            if current_app.config.get('CRON_SECRET'):
                return _unauthorized()
            ctx = RequestContext('anonymous', 'open', _request_id())
        return view(ctx, *args, **kwargs)
    return wrapper


@auth_bp.route('/verify-password', methods=['POST'])
def verify_password():
    """Exchange the admin password for a signed token"""
    try:
        data = request.get_json(silent=True) or {}
        password = data.get('password')
        if not password:
            return jsonify({'success': False, 'error': 'Password is required'}), 400

        expected = current_app.config.get('ADMIN_PASSWORD')
        if not expected:
            logger.error("ADMIN_PASSWORD is not configured")
            return jsonify({'success': False, 'error': 'Server error'}), 500

        if not _matches(str(password), expected):
            log_security_event(current_app, 'LOGIN_FAILED', f"Invalid password from {request.remote_addr}")
            return jsonify({'success': False, 'error': 'Invalid password'}), 401

        return jsonify({
            'success': True,
            'token': issue_token(),
            'expires_in': current_app.config.get('AUTH_TOKEN_MAX_AGE', 24 * 3600),
            'message': 'Authentication successful'
        })

    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return jsonify({'success': False, 'error': 'Server error'}), 500

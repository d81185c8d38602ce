from datetime import date
from decimal import Decimal, InvalidOperation
from io import BytesIO
import logging

from flask import Blueprint, current_app, jsonify, request, send_file

from ashram_dashboard import db
from ashram_dashboard.errors import DashboardError, InvalidRequestError, NotFoundError
from ashram_dashboard.models import Bhakt
from ashram_dashboard.routes import error_response
from ashram_dashboard.routes.auth import require_admin
from ashram_dashboard.services.receipt_service import generate_receipt_pdf, receipt_filename
from ashram_dashboard.services.year_config_service import YearConfigService

bhakts_bp = Blueprint('bhakts', __name__)

logger = logging.getLogger(__name__)

TEXT_FIELDS = ('name', 'alias_name', 'email', 'phone_number', 'address', 'payment_status')
AMOUNT_FIELDS = ('monthly_donation_amount', 'carry_forward_balance')
TRUE_VALUES = ('1', 'true', 'yes')


def _amount(field, value):
    if value in (None, ''):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise InvalidRequestError(f'{field} must be a number')
    if not amount.is_finite():
        raise InvalidRequestError(f'{field} must be a number')
    return amount


def _flag(value):
    if isinstance(value, str):
        return value.strip().lower() in TRUE_VALUES
    return bool(value)


def _apply_fields(bhakt, data):
    for field in TEXT_FIELDS:
        if field in data:
            value = data[field]
            setattr(bhakt, field, str(value).strip() if value not in (None, '') else None)
    for field in AMOUNT_FIELDS:
        if field in data:
            setattr(bhakt, field, _amount(field, data[field]))
    if 'last_payment_date' in data:
        value = data['last_payment_date']
        try:
            bhakt.last_payment_date = date.fromisoformat(value[:10]) if value else None
        except (TypeError, ValueError):
            raise InvalidRequestError('last_payment_date must be YYYY-MM-DD')
    if 'is_active' in data:
        bhakt.is_active = _flag(data['is_active'])
    if not bhakt.name:
        raise InvalidRequestError('name is required')


def _get_bhakt(bhakt_id):
    bhakt = db.session.get(Bhakt, bhakt_id)
    if bhakt is None:
        raise NotFoundError('Bhakt not found')
    return bhakt


@bhakts_bp.route('/bhakts', methods=['GET'])
@require_admin
def list_bhakts(ctx):
    try:
        query = Bhakt.query
        active = request.args.get('active')
        if active is not None:
            query = query.filter(Bhakt.is_active.is_(active.lower() in TRUE_VALUES))
        search = request.args.get('q')
        if search:
            query = query.filter(Bhakt.name.ilike(f'%{search.strip()}%'))

        bhakts = query.order_by(Bhakt.name).all()
        return jsonify({'success': True, 'count': len(bhakts), 'bhakts': [b.to_dict() for b in bhakts]})
    except Exception as e:
        logger.error(f"[{ctx.request_id}] Listing bhakts failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@bhakts_bp.route('/bhakts', methods=['POST'])
@require_admin
def create_bhakt(ctx):
    """Add a bhakt and give them monthly rows for every active year"""
    try:
        data = request.get_json(silent=True) or {}
        bhakt = Bhakt()
        _apply_fields(bhakt, data)
        db.session.add(bhakt)
        db.session.commit()

        YearConfigService().populate_monthly_sync()
        logger.info(f"[{ctx.request_id}] Bhakt {bhakt.id} '{bhakt.name}' created by {ctx.actor}")
        return jsonify({'success': True, 'bhakt': bhakt.to_dict()}), 201

    except DashboardError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"[{ctx.request_id}] Creating bhakt failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@bhakts_bp.route('/bhakts/<int:bhakt_id>', methods=['GET'])
@require_admin
def get_bhakt(ctx, bhakt_id):
    try:
        return jsonify({'success': True, 'bhakt': _get_bhakt(bhakt_id).to_dict()})
    except DashboardError as e:
        return error_response(e)


@bhakts_bp.route('/bhakts/<int:bhakt_id>', methods=['PATCH'])
@require_admin
def update_bhakt(ctx, bhakt_id):
    try:
        bhakt = _get_bhakt(bhakt_id)
        _apply_fields(bhakt, request.get_json(silent=True) or {})
        db.session.commit()
        logger.info(f"[{ctx.request_id}] Bhakt {bhakt.id} updated by {ctx.actor}")
        return jsonify({'success': True, 'bhakt': bhakt.to_dict()})

    except DashboardError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"[{ctx.request_id}] Updating bhakt {bhakt_id} failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@bhakts_bp.route('/bhakts/<int:bhakt_id>/receipt', methods=['GET'])
@require_admin
def bhakt_receipt(ctx, bhakt_id):
    """Payment receipt PDF"""
    try:
        bhakt = _get_bhakt(bhakt_id)
        pdf = generate_receipt_pdf(
            bhakt,
            current_app.config.get('ASHRAM_NAME'),
            current_app.config.get('ASHRAM_ADDRESS', '')
        )
        return send_file(
            BytesIO(pdf),
            mimetype='application/pdf',
            as_attachment=True,
            download_name=receipt_filename(bhakt)
        )
    except DashboardError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"[{ctx.request_id}] Receipt for bhakt {bhakt_id} failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

import logging

from flask import Blueprint, jsonify, request

from ashram_dashboard import db
from ashram_dashboard.errors import DashboardError
from ashram_dashboard.routes import error_response
from ashram_dashboard.routes.auth import require_admin
from ashram_dashboard.services.year_config_service import YearConfigService

years_bp = Blueprint('years', __name__)

logger = logging.getLogger(__name__)


@years_bp.route('/years', methods=['GET'])
@require_admin
def list_years(ctx):
    years = YearConfigService().list_years()
    return jsonify({'success': True, 'years': [y.to_dict() for y in years]})


@years_bp.route('/years', methods=['POST'])
@require_admin
def add_year(ctx):
    try:
        data = request.get_json(silent=True) or {}
        config, created = YearConfigService().add_year(data.get('year'))
        logger.info(f"[{ctx.request_id}] Year {config.year} added by {ctx.actor}")
        return jsonify({'success': True, 'year': config.to_dict(), 'monthly_rows_created': created}), 201
    except DashboardError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"[{ctx.request_id}] Adding year failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@years_bp.route('/years/<int:year>', methods=['PATCH'])
@require_admin
def update_year(ctx, year):
    try:
        data = request.get_json(silent=True) or {}
        if 'is_active' not in data:
            return jsonify({'success': False, 'error': 'is_active required'}), 400
        config = YearConfigService().set_year_active(year, data['is_active'])
        return jsonify({'success': True, 'year': config.to_dict()})
    except DashboardError as e:
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"[{ctx.request_id}] Updating year {year} failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@years_bp.route('/years/<int:year>', methods=['DELETE'])
@require_admin
def delete_year(ctx, year):
    try:
        removed = YearConfigService().delete_year(year)
        logger.info(f"[{ctx.request_id}] Year {year} deleted by {ctx.actor}")
        return jsonify({'success': True, 'monthly_rows_removed': removed})
    except DashboardError as e:
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"[{ctx.request_id}] Deleting year {year} failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@years_bp.route('/years/<int:year>/sync', methods=['POST'])
@require_admin
def sync_year(ctx, year):
    """Create missing monthly rows for every bhakt in `year`"""
    try:
        created = YearConfigService().sync_bhakts_for_year(year)
        return jsonify({'success': True, 'year': year, 'monthly_rows_created': created})
    except Exception as e:
        db.session.rollback()
        logger.error(f"[{ctx.request_id}] Syncing year {year} failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

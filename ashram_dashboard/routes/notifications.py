import logging

from flask import Blueprint, current_app, jsonify, request

from ashram_dashboard import db
from ashram_dashboard.errors import DashboardError, NotFoundError
from ashram_dashboard.models import Bhakt
from ashram_dashboard.routes import error_response
from ashram_dashboard.routes.auth import require_admin, require_cron
from ashram_dashboard.services.mail_service import MailService
from ashram_dashboard.services.matrix_export_service import MatrixExportService

notifications_bp = Blueprint('notifications', __name__)

logger = logging.getLogger(__name__)


@notifications_bp.route('/send-bhakt-status', methods=['POST'])
@require_admin
def send_bhakt_status(ctx):
    """Mail the Bhiksha status to one bhakt"""
    try:
        data = request.get_json(silent=True) or {}
        bhakt_id = data.get('bhakt_id')
        if not bhakt_id:
            return jsonify({'success': False, 'error': 'bhakt_id required'}), 400

        bhakt = db.session.get(Bhakt, bhakt_id)
        if bhakt is None:
            raise NotFoundError('Bhakt not found')

        MailService.from_config(current_app.config).send_bhakt_status(bhakt)
        logger.info(f"[{ctx.request_id}] Status mail for bhakt {bhakt.id} sent by {ctx.actor}")
        return jsonify({'success': True})

    except DashboardError as e:
        logger.error(f"[{ctx.request_id}] send-bhakt-status: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.error(f"[{ctx.request_id}] send-bhakt-status error: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@notifications_bp.route('/send-bhiksha-status', methods=['GET', 'POST'])
@require_cron
def send_bhiksha_status(ctx):
    """Scheduled status mail to every active bhakt with an email"""
    try:
        bhakts = Bhakt.query.filter(
            Bhakt.email.isnot(None), Bhakt.is_active.is_(True)
        ).order_by(Bhakt.name).all()
        if not bhakts:
            return jsonify({'success': True, 'sent': 0})

        sent = MailService.from_config(current_app.config).send_bulk_status(bhakts)
        logger.info(f"[{ctx.request_id}] Bulk status run by {ctx.actor}: {sent} sent")
        return jsonify({'success': True, 'sent': sent})

    except DashboardError as e:
        logger.error(f"[{ctx.request_id}] send-bhiksha-status: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.error(f"[{ctx.request_id}] send-bhiksha-status error: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@notifications_bp.route('/weekly-report', methods=['GET', 'POST'])
@require_cron
def weekly_report(ctx):
    """Mail the MonthlyMatrix workbook to WEEKLY_REPORT_RECIPIENTS"""
    try:
        recipients = current_app.config.get('WEEKLY_REPORT_RECIPIENTS') or []
        content, filename = MatrixExportService().generate()
        sent_to = MailService.from_config(current_app.config).send_weekly_report(recipients, content, filename)
        return jsonify({'success': True, 'recipients': sent_to})

    except DashboardError as e:
        logger.error(f"[{ctx.request_id}] weekly-report: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.error(f"[{ctx.request_id}] weekly-report error: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

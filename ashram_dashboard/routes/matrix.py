from io import BytesIO
import logging

from flask import Blueprint, current_app, jsonify, request, send_file

from ashram_dashboard.errors import DashboardError, MatrixApplyError, MatrixValidationError
from ashram_dashboard.routes import error_response
from ashram_dashboard.routes.auth import require_admin
from ashram_dashboard.services.backup_service import BackupService
from ashram_dashboard.services.matrix_export_service import MatrixExportService
from ashram_dashboard.services.matrix_reconciler import (
    UPLOAD_MODES, MatrixReconciler, read_upload_grid
)
from config.security import SecurityConfig

matrix_bp = Blueprint('matrix', __name__)

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


@matrix_bp.route('/generate-monthly-matrix', methods=['GET', 'POST'])
@require_admin
def generate_monthly_matrix(ctx):
    """Download the MonthlyMatrix workbook"""
    try:
        content, filename = MatrixExportService().generate()
        logger.info(f"[{ctx.request_id}] Matrix exported by {ctx.actor}: {filename}")
        return send_file(
            BytesIO(content),
            mimetype=XLSX_MIMETYPE,
            as_attachment=True,
            download_name=filename
        )
    except Exception as e:
        logger.error(f"[{ctx.request_id}] Matrix export failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@matrix_bp.route('/upload-monthly-matrix', methods=['POST'])
@require_admin
def upload_monthly_matrix(ctx):
    """Preview (mode=validate) or apply (mode=apply) an edited MonthlyMatrix"""
    try:
        upload = request.files.get('file')
        if upload is None or not upload.filename:
            return jsonify({'success': False, 'error': 'No file uploaded'}), 400
        if not SecurityConfig.is_allowed_upload(upload.filename):
            return jsonify({'success': False, 'error': 'Upload an .xlsx or .csv matrix'}), 400

        mode = (request.form.get('mode') or request.form.get('action') or 'validate').strip().lower()
        if mode not in UPLOAD_MODES:
            return jsonify({
                'success': False,
                'error': 'Unknown mode. Use mode=validate or mode=apply'
            }), 400

        grid = read_upload_grid(upload.stream, upload.filename)

        backup_service = BackupService.from_config(current_app.config) if mode == 'apply' else None
        reconciler = MatrixReconciler(backup_service=backup_service)
        result = reconciler.run(grid, mode)

        logger.info(f"[{ctx.request_id}] Matrix {mode} of '{upload.filename}' by {ctx.actor} ({ctx.auth_mode})")
        return jsonify(result)

    except MatrixValidationError as e:
        logger.warning(f"[{ctx.request_id}] Rejected matrix upload: {e.message}")
        return error_response(e)
    except MatrixApplyError as e:
        logger.error(f"[{ctx.request_id}] Matrix apply failed: {e.message}")
        return error_response(e)
    except DashboardError as e:
        logger.error(f"[{ctx.request_id}] Matrix upload error: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.error(f"[{ctx.request_id}] Matrix upload error: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

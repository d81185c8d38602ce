import logging

from flask import Blueprint, current_app, jsonify

from ashram_dashboard.errors import DashboardError
from ashram_dashboard.models import BACKUP_TABLES
from ashram_dashboard.routes import error_response
from ashram_dashboard.routes.auth import require_admin, require_cron
from ashram_dashboard.services.backup_service import (
    CONTENT_TYPES, BackupService, GoogleDriveBackupStorage, backup_prefix
)
from ashram_dashboard.services.google_drive_service import GoogleDriveService
from ashram_dashboard.services.matrix_export_service import MatrixExportService

backups_bp = Blueprint('backups', __name__)

logger = logging.getLogger(__name__)


@backups_bp.route('/backups', methods=['GET'])
@require_admin
def list_backups(ctx):
    try:
        service = BackupService.from_config(current_app.config)
        files = service.list_backups()
        return jsonify({
            'success': True,
            'storage': current_app.config.get('BACKUP_STORAGE', 'local'),
            'count': len(files),
            'files': files
        })
    except DashboardError as e:
        logger.error(f"[{ctx.request_id}] Listing backups failed: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.error(f"[{ctx.request_id}] Listing backups failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@backups_bp.route('/drive-backup', methods=['GET', 'POST'])
@require_cron
def drive_backup(ctx):
    """Scheduled snapshot of every table plus the matrix workbook to Google Drive"""
    try:
        drive = GoogleDriveService.from_config(current_app.config)
        service = BackupService(GoogleDriveBackupStorage(drive))

        prefix = backup_prefix('scheduled')
        tables = service.snapshot_tables(BACKUP_TABLES, prefix=prefix)

        content, filename = MatrixExportService().generate()
        service.save_artifact(f'{prefix}/{filename}', content, CONTENT_TYPES['xlsx'])

        logger.info(f"[{ctx.request_id}] Drive backup by {ctx.actor}: {len(tables)} tables + {filename}")
        return jsonify({'success': True, 'prefix': prefix, 'backups': tables, 'matrix': filename})

    except DashboardError as e:
        logger.error(f"[{ctx.request_id}] Drive backup failed: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.error(f"[{ctx.request_id}] Drive backup failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

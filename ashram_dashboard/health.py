"""
Health checks for the Ashram Dashboard
Used by the container healthcheck and uptime monitoring
"""

from flask import Blueprint, jsonify, current_app
from datetime import datetime
from sqlalchemy import inspect, text
import os
import psutil
import sys

from ashram_dashboard import db

health_bp = Blueprint('health', __name__)

APP_NAME = 'Ashram Dashboard'
APP_VERSION = '1.0.0'


def _check_database():
    with db.engine.connect() as connection:
        connection.execute(text('SELECT 1')).fetchone()
    return {
        'status': 'healthy',
        'connection': 'ok',
        'dialect': db.engine.dialect.name,
        'tables': sorted(inspect(db.engine).get_table_names())
    }


def _check_directory(path):
    if not path or not os.path.exists(path):
        return {'exists': False, 'writable': False}
    return {'exists': True, 'writable': os.access(path, os.W_OK)}


@health_bp.route('/health')
def health_check():
    """
    Full health report: database, backup storage, host resources, configuration.
    200 when the database answers, 503 otherwise.
    """
    health_status = {
        'status': 'healthy',
        'timestamp': datetime.utcnow().isoformat(),
        'checks': {}
    }
    overall_healthy = True

    try:
        health_status['checks']['database'] = _check_database()
    except Exception as e:
        health_status['checks']['database'] = {'status': 'unhealthy', 'error': str(e)}
        overall_healthy = False

    # Backups only need a writable directory when stored locally
    storage = current_app.config.get('BACKUP_STORAGE', 'local')
    backup_check = {'status': 'healthy', 'storage': storage}
    if storage == 'local':
        backup_dir = current_app.config.get('BACKUP_DIR')
        backup_check['directory'] = _check_directory(backup_dir)
        if backup_check['directory']['exists'] and not backup_check['directory']['writable']:
            backup_check['status'] = 'warning'
    else:
        backup_check['drive_configured'] = bool(current_app.config.get('GOOGLE_REFRESH_TOKEN'))
        if not backup_check['drive_configured']:
            backup_check['status'] = 'warning'
    health_status['checks']['backups'] = backup_check

    try:
        memory = psutil.virtual_memory()
        disk = psutil.disk_usage('/')
        health_status['checks']['resources'] = {
            'status': 'healthy',
            'memory_percent_used': memory.percent,
            'disk_percent_used': round((disk.used / disk.total) * 100, 1),
            'cpu_count': psutil.cpu_count()
        }
        if memory.percent > 90 or (disk.used / disk.total) > 0.95:
            health_status['checks']['resources']['status'] = 'warning'
            health_status['checks']['resources']['message'] = 'High resource usage detected'
    except Exception as e:
        health_status['checks']['resources'] = {'status': 'unhealthy', 'error': str(e)}

    configured = {
        key: bool(current_app.config.get(key))
        for key in ('ADMIN_PASSWORD', 'ADMIN_SECRET', 'CRON_SECRET', 'SMTP_HOST')
    }
    health_status['checks']['configuration'] = {
        'status': 'healthy' if configured['ADMIN_PASSWORD'] else 'warning',
        'configured': configured
    }

    if overall_healthy:
        status_code = 200
    else:
        health_status['status'] = 'unhealthy'
        status_code = 503

    return jsonify(health_status), status_code


@health_bp.route('/health/simple')
def simple_health_check():
    return jsonify({
        'status': 'ok',
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@health_bp.route('/health/database')
def database_health_check():
    try:
        check = _check_database()
        return jsonify({
            'status': 'healthy',
            'database': 'connected',
            'tables': len(check['tables']),
            'timestamp': datetime.utcnow().isoformat()
        }), 200
    except Exception as e:
        return jsonify({
            'status': 'unhealthy',
            'error': str(e),
            'timestamp': datetime.utcnow().isoformat()
        }), 503


@health_bp.route('/health/version')
def version_info():
    return jsonify({
        'application': APP_NAME,
        'version': APP_VERSION,
        'python_version': sys.version,
        'platform': sys.platform,
        'git_commit': os.environ.get('GIT_COMMIT', 'unknown'),
        'timestamp': datetime.utcnow().isoformat()
    }), 200

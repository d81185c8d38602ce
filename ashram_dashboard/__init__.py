from flask import Flask, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
import os
from datetime import datetime

# Load environment variables automatically
from dotenv import load_dotenv
load_dotenv()

db = SQLAlchemy()
migrate = Migrate()


def create_app(config_name=None):
    from config.config import config_by_name
    from config.logging import setup_logging, log_request
    from config.security import configure_security

    app = Flask(__name__)

    config_name = config_name or os.getenv('APP_CONFIG', 'default')
    config_class = config_by_name[config_name]
    app.config.from_object(config_class)
    config_class.init_app(app)

    setup_logging(app)

    # Initialize extensions
    try:
        db.init_app(app)
        migrate.init_app(app, db)
    except Exception as db_init_error:
        app.logger.error(f"Database Initialization Error: {db_init_error}")
        app.logger.error(f"Database URI: {app.config['SQLALCHEMY_DATABASE_URI']}")
        raise

    # Import models (important to do this before registering blueprints)
    from ashram_dashboard import models  # noqa: F401

    configure_security(app)

    from ashram_dashboard.health import health_bp
    from ashram_dashboard.routes.auth import auth_bp
    from ashram_dashboard.routes.matrix import matrix_bp
    from ashram_dashboard.routes.notifications import notifications_bp
    from ashram_dashboard.routes.backups import backups_bp
    from ashram_dashboard.routes.bhakts import bhakts_bp
    from ashram_dashboard.routes.years import years_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp, url_prefix='/api')
    app.register_blueprint(matrix_bp, url_prefix='/api')
    app.register_blueprint(notifications_bp, url_prefix='/api')
    app.register_blueprint(backups_bp, url_prefix='/api')
    app.register_blueprint(bhakts_bp, url_prefix='/api')
    app.register_blueprint(years_bp, url_prefix='/api')

    @app.route('/')
    def index():
        return jsonify({
            'application': 'Ashram Dashboard',
            'endpoints': sorted(
                rule.rule for rule in app.url_map.iter_rules()
                if rule.rule.startswith('/api/')
            ),
            'timestamp': datetime.now().isoformat()
        })

    @app.errorhandler(413)
    def upload_too_large(error):
        return jsonify({
            'success': False,
            'error': 'Uploaded file is too large'
        }), 413

    @app.after_request
    def access_log(response):
        log_request(request, response)
        return response

    return app

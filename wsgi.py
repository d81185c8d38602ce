"""
WSGI entry point for gunicorn
"""

import os

from ashram_dashboard import create_app

application = create_app(os.getenv('APP_CONFIG', 'production'))
app = application

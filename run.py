#!/usr/bin/env python3
"""
Local development server for the Ashram Dashboard
"""

import os
from dotenv import load_dotenv

# Load environment variables FIRST
load_dotenv()


def main():
    from ashram_dashboard import create_app, db

    app = create_app(os.getenv('APP_CONFIG', 'development'))

    with app.app_context():
        try:
            db.create_all()
        except Exception as e:
            app.logger.warning(f"Database warning: {e}")

    port = int(os.getenv('APP_PORT', 8081))
    app.run(debug=app.config.get('DEBUG', False), host='0.0.0.0', port=port)


if __name__ == '__main__':
    main()

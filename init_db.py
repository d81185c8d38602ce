#!/usr/bin/env python3
"""
Initialize the Ashram Dashboard database and seed the current year
"""

from datetime import date
from dotenv import load_dotenv

load_dotenv()


def init_database():
    from ashram_dashboard import create_app, db
    from ashram_dashboard.models import YearConfig
    from ashram_dashboard.services.year_config_service import YearConfigService

    app = create_app()
    with app.app_context():
        db.create_all()

        current_year = date.today().year
        if not YearConfig.query.filter_by(year=current_year).first():
            YearConfigService().add_year(current_year)
            print(f"Seeded year {current_year}")

        print("Database initialized successfully")


if __name__ == '__main__':
    init_database()

import logging
from datetime import date

from ashram_dashboard import db
from ashram_dashboard.errors import ConflictError, InvalidRequestError, NotFoundError
from ashram_dashboard.models import Bhakt, MonthlySync, YearConfig

MIN_YEAR = 2020
MAX_YEAR = 2050


class YearConfigService:
    """Year columns offered by the dashboard and their monthly_sync rows"""

    def __init__(self, session=None):
        self.session = session or db.session
        self.logger = logging.getLogger(__name__)

    def list_years(self):
        return self.session.query(YearConfig).order_by(YearConfig.year).all()

    def active_years(self):
        years = [y for (y,) in self.session.query(YearConfig.year)
                 .filter(YearConfig.is_active.is_(True)).order_by(YearConfig.year)]
        return years or [date.today().year]

    def _get(self, year):
        config = self.session.query(YearConfig).filter_by(year=year).first()
        if config is None:
            raise NotFoundError(f'Year {year} not found')
        return config

    def add_year(self, year):
        try:
            year = int(year)
        except (TypeError, ValueError):
            raise InvalidRequestError('Please enter a valid year between 2020 and 2050')
        if year < MIN_YEAR or year > MAX_YEAR:
            raise InvalidRequestError('Please enter a valid year between 2020 and 2050')
        if self.session.query(YearConfig).filter_by(year=year).first():
            raise ConflictError(f'Year {year} already exists')

        config = YearConfig(year=year, is_active=True)
        self.session.add(config)
        self.session.commit()
        self.logger.info(f"Added year {year}")

        created = self.sync_bhakts_for_year(year)
        return config, created

    def delete_year(self, year):
        config = self._get(year)
        removed = self.session.query(MonthlySync).filter_by(year=year).delete(synchronize_session=False)
        self.session.delete(config)
        self.session.commit()
        self.logger.info(f"Deleted year {year} and {removed} monthly_sync rows")
        return removed

    def set_year_active(self, year, is_active):
        config = self._get(year)
        config.is_active = bool(is_active)
        self.session.commit()
        self.logger.info(f"Year {year} is now {'active' if config.is_active else 'inactive'}")
        return config

    def sync_bhakts_for_year(self, year):
        """Create 12 unpaid monthly_sync rows for every bhakt that has none in `year`"""
        existing = {bhakt_id for (bhakt_id,) in
                    self.session.query(MonthlySync.bhakt_id).filter_by(year=year).distinct()}
        missing = [bhakt_id for (bhakt_id,) in self.session.query(Bhakt.id).order_by(Bhakt.id)
                   if bhakt_id not in existing]

        for bhakt_id in missing:
            for month in range(1, 13):
                self.session.add(MonthlySync(bhakt_id=bhakt_id, year=year, month=month, is_paid=False))
        self.session.commit()

        created = len(missing) * 12
        if created:
            self.logger.info(f"Created {created} monthly_sync rows for {len(missing)} bhakts in {year}")
        return created

    def populate_monthly_sync(self):
        """Sync every configured active year; returns {year: rows created}"""
        years = [c.year for c in self.list_years() if c.is_active]
        return {year: self.sync_bhakts_for_year(year) for year in years}

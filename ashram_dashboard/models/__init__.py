from ashram_dashboard.models.bhakt import Bhakt
from ashram_dashboard.models.monthly_sync import MonthlySync
from ashram_dashboard.models.monthly_donation import MonthlyDonation
from ashram_dashboard.models.year_config import YearConfig

# Tables snapshotted before a matrix overwrite, in backup order
BACKUP_TABLES = ['bhakt', 'monthly_sync', 'monthly_donations', 'year_config']

__all__ = ['Bhakt', 'MonthlySync', 'MonthlyDonation', 'YearConfig', 'BACKUP_TABLES']

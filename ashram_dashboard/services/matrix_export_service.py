import io
import logging
from datetime import date, datetime

from openpyxl import Workbook
from openpyxl.comments import Comment
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from ashram_dashboard import db
from ashram_dashboard.models import Bhakt, MonthlySync
from ashram_dashboard.models.bhakt import plain_amount
from ashram_dashboard.services.year_config_service import YearConfigService

SHEET_TITLE = 'MonthlyMatrix'

FRONT_COLUMNS = [
    ('bhakt_id', 2),
    ('Name', 30),
    ('monthly_donation_amount', 18),
    ('carry_forward_balance', 18),
    ('last_payment_date', 18),
    ('payment_status', 20),
]

YEAR_COLORS = ['DBF5FF', 'DFF7E3', 'F3E8FF', 'FFF2D9', 'E8F8FF']
PAID_FILL = PatternFill('solid', fgColor='98FB98')
PAID_FONT = Font(bold=True, color='006400')
HEADER_FONT = Font(bold=True)
BORDER_THIN = Border(
    left=Side(style='thin', color='DDDDDD'),
    right=Side(style='thin', color='DDDDDD'),
    top=Side(style='thin', color='DDDDDD'),
    bottom=Side(style='thin', color='DDDDDD'),
)

INSTRUCTIONS = ('Do not edit bhakt_id (hidden column A). '
                'Put any value in a month cell to mark it paid; clear it to mark unpaid.')


def matrix_filename(today=None):
    """MonthlySync_Matrix_DD-MM-YYYY.xlsx"""
    today = today or date.today()
    return f'MonthlySync_Matrix_{today:%d-%m-%Y}.xlsx'


class MatrixExportService:
    """Builds the MonthlyMatrix workbook that the upload endpoint reads back"""

    def __init__(self, session=None):
        self.session = session or db.session
        self.logger = logging.getLogger(__name__)

    def build_workbook(self):
        years = YearConfigService(self.session).active_years()
        bhakts = self.session.query(Bhakt).order_by(Bhakt.name, Bhakt.id).all()
        records = {
            r.key: r for r in self.session.query(MonthlySync).filter(MonthlySync.year.in_(years))
        }

        wb = Workbook()
        ws = wb.active
        ws.title = SHEET_TITLE

        headers = [name for name, _ in FRONT_COLUMNS]
        for year in years:
            headers.extend(f'{year}-{month:02d}' for month in range(1, 13))
        ws.append(headers)

        front = len(FRONT_COLUMNS)
        for index, (name, width) in enumerate(FRONT_COLUMNS, start=1):
            ws.column_dimensions[get_column_letter(index)].width = width
            ws.cell(row=1, column=index).font = HEADER_FONT
        ws.column_dimensions['A'].hidden = True
        ws['B1'].comment = Comment(INSTRUCTIONS, 'Ashram Dashboard')

        year_fills = [PatternFill('solid', fgColor=YEAR_COLORS[i % len(YEAR_COLORS)])
                      for i in range(len(years))]

        for offset in range(len(years) * 12):
            column = front + 1 + offset
            header = ws.cell(row=1, column=column)
            header.font = HEADER_FONT
            header.fill = year_fills[offset // 12]
            header.alignment = Alignment(horizontal='center')
            header.border = BORDER_THIN
            ws.column_dimensions[get_column_letter(column)].width = 9

        for bhakt in bhakts:
            row = [
                bhakt.id,
                bhakt.name or '',
                plain_amount(bhakt.monthly_donation_amount),
                plain_amount(bhakt.carry_forward_balance),
                bhakt.last_payment_date.isoformat() if bhakt.last_payment_date else None,
                bhakt.payment_status,
            ]
            for year in years:
                for month in range(1, 13):
                    record = records.get((bhakt.id, year, month))
                    row.append(record.display_value if record is not None else None)
            ws.append(row)

            row_index = ws.max_row
            # Stored text is never written as a formula
            for cell in ws[row_index]:
                if cell.data_type == 'f':
                    cell.data_type = 's'
            for offset in range(len(years) * 12):
                cell = ws.cell(row=row_index, column=front + 1 + offset)
                cell.alignment = Alignment(horizontal='center')
                cell.border = BORDER_THIN
                if cell.value is not None:
                    cell.fill = PAID_FILL
                    cell.font = PAID_FONT
                else:
                    cell.fill = year_fills[offset // 12]

        # Header row and the id/name columns stay in view
        ws.freeze_panes = 'C2'

        self.logger.info(f"Built matrix workbook: {len(bhakts)} bhakts x {len(years) * 12} months "
                         f"({', '.join(str(y) for y in years)})")
        return wb

    def generate(self, today=None):
        """Return (xlsx bytes, filename)"""
        buffer = io.BytesIO()
        self.build_workbook().save(buffer)
        return buffer.getvalue(), matrix_filename(today or datetime.now().date())

"""
Matrix upload reconciliation.

An uploaded MonthlyMatrix sheet is parsed into typed rows, each row is resolved
to a bhakt (by id, else by name), and every month column is compared with the
stored ``monthly_sync`` value. ``preview`` only reports the differences;
``apply`` snapshots the affected tables, creates new bhakts and upserts one
``monthly_sync`` row per difference.
"""

import csv
import io
import logging
import re
import zipfile
from collections import namedtuple
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, List, Optional, Tuple

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.exc import SQLAlchemyError

from ashram_dashboard import db
from ashram_dashboard.errors import MatrixApplyError, MatrixValidationError
from ashram_dashboard.models import BACKUP_TABLES, Bhakt, MonthlySync

logger = logging.getLogger(__name__)

MONTH_ABBREVIATIONS = ['jan', 'feb', 'mar', 'apr', 'may', 'jun',
                       'jul', 'aug', 'sep', 'oct', 'nov', 'dec']

MONTH_NAME_HEADER = re.compile(
    r'^(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*[\s\-/]*(\d{4})$',
    re.IGNORECASE
)
ISO_MONTH_HEADER = re.compile(r'^(\d{4})-(\d{2})$')
NUMERIC_CELL = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$')
INTEGER_CELL = re.compile(r'^[+-]?\d+$')

ID_HEADERS = ('bhakt id', 'bhakt_id', 'id')
NAME_HEADERS = ('bhakt name', 'bhakt_name', 'name')

# Header (normalized) -> Bhakt column, for rows that create a new bhakt
METADATA_HEADERS = {
    'monthly_donation_amount': 'monthly_donation_amount',
    'monthly donation amount': 'monthly_donation_amount',
    'monthly_donation': 'monthly_donation_amount',
    'carry_forward_balance': 'carry_forward_balance',
    'carry forward balance': 'carry_forward_balance',
    'last_payment_date': 'last_payment_date',
    'last payment date': 'last_payment_date',
    'payment_status': 'payment_status',
    'payment status': 'payment_status',
}

UPLOAD_MODES = ('validate', 'apply')


class CellKind(Enum):
    IDENTIFIER = 'identifier'
    PERIOD = 'period'
    METADATA = 'metadata'


ParsedCell = namedtuple('ParsedCell', ['header', 'kind', 'value', 'period'])


def normalize_header(header):
    """Trim, collapse inner whitespace and lower-case a header cell"""
    if header is None:
        return ''
    return re.sub(r'\s+', ' ', str(header).strip()).lower()


def parse_period_header(header) -> Optional[Tuple[int, int]]:
    """Return (year, month) for headers like 'Mar-2026', 'March 2026' or '2026-03'"""
    # Excel turns a typed "Mar-2026" into a date cell
    if isinstance(header, (datetime, date)):
        return header.year, header.month

    text = str(header).strip() if header is not None else ''
    if not text:
        return None

    match = MONTH_NAME_HEADER.match(text)
    if match:
        month = MONTH_ABBREVIATIONS.index(match.group(1).lower()) + 1
        return int(match.group(2)), month

    match = ISO_MONTH_HEADER.match(text)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        if 1 <= month <= 12:
            return year, month

    return None


def coerce_cell(value):
    """Empty -> None, numeric text -> number, anything else -> stripped text"""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
        return int(number) if number.is_integer() else number
    if isinstance(value, (datetime, date)):
        return value.isoformat()

    text = str(value).strip()
    if not text:
        return None
    if INTEGER_CELL.match(text):
        return int(text)
    if NUMERIC_CELL.match(text):
        number = float(text)
        return int(number) if number.is_integer() else number
    return text


class UploadedRow:
    """One data row of the sheet as an ordered list of ParsedCell"""

    def __init__(self, row_number, cells):
        self.row_number = row_number
        self.cells = cells

    def _identifier(self, headers):
        for cell in self.cells:
            if cell.kind is CellKind.IDENTIFIER and normalize_header(cell.header) in headers \
                    and cell.value is not None:
                return cell.value
        return None

    @property
    def entity_id(self):
        value = self._identifier(ID_HEADERS)
        if isinstance(value, bool):
            return None
        return value

    @property
    def name(self):
        value = self._identifier(NAME_HEADERS)
        return str(value).strip() if value is not None else None

    @property
    def period_cells(self):
        return [cell for cell in self.cells if cell.kind is CellKind.PERIOD]

    def metadata(self) -> Dict[str, object]:
        fields = {}
        for cell in self.cells:
            if cell.kind is not CellKind.METADATA:
                continue
            column = METADATA_HEADERS.get(normalize_header(cell.header))
            if column and column not in fields:
                fields[column] = cell.value
        return fields

    def __repr__(self):
        return f'<UploadedRow {self.row_number}: id={self.entity_id!r} name={self.name!r}>'


class ParsedUpload:
    def __init__(self, headers, columns, rows):
        self.headers = headers
        self.columns = columns
        self.rows = rows


def _is_blank_row(values):
    return all(v is None or (isinstance(v, str) and not v.strip()) for v in values)


def parse_grid(grid) -> ParsedUpload:
    """Turn a 2-D list of cell values (row 0 = header) into a ParsedUpload"""
    numbered = [(number, list(values)) for number, values in enumerate(grid or [], start=1)
                if values is not None and not _is_blank_row(values)]
    if len(numbered) < 2:
        raise MatrixValidationError('Uploaded sheet is empty or missing header')

    raw_headers = numbered[0][1]
    headers = [str(h).strip() if h is not None else '' for h in raw_headers]
    normalized = [normalize_header(h) for h in headers]
    if not any(h in ID_HEADERS or h in NAME_HEADERS for h in normalized):
        raise MatrixValidationError(
            'Uploaded sheet missing Bhakt identifier (Bhakt ID or Name) column'
        )

    columns = []
    for raw, header, norm in zip(raw_headers, headers, normalized):
        if norm in ID_HEADERS or norm in NAME_HEADERS:
            columns.append((header, CellKind.IDENTIFIER, None))
            continue
        period = parse_period_header(raw)
        if period:
            columns.append((header, CellKind.PERIOD, period))
        else:
            columns.append((header, CellKind.METADATA, None))

    rows = []
    for number, values in numbered[1:]:
        cells = []
        for index, (header, kind, period) in enumerate(columns):
            raw = values[index] if index < len(values) else None
            cells.append(ParsedCell(header, kind, coerce_cell(raw), period))
        rows.append(UploadedRow(number, cells))

    logger.debug(f"Parsed upload: {len(rows)} rows, {len(columns)} columns, "
                 f"{sum(1 for c in columns if c[1] is CellKind.PERIOD)} month columns")
    return ParsedUpload(headers, columns, rows)


def read_upload_grid(stream, filename) -> List[list]:
    """Read the first worksheet of an uploaded .xlsx (or a .csv) into a grid"""
    data = stream.read()
    if not data:
        raise MatrixValidationError('Uploaded file is empty')

    if filename and filename.lower().endswith('.csv'):
        try:
            text = data.decode('utf-8-sig')
        except UnicodeDecodeError:
            raise MatrixValidationError('Uploaded CSV is not UTF-8 encoded')
        return [row for row in csv.reader(io.StringIO(text))]

    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise MatrixValidationError(f'Could not read uploaded workbook: {e}')

    try:
        if not workbook.worksheets:
            raise MatrixValidationError('Uploaded xlsx has no worksheets')
        sheet = workbook.worksheets[0]
        return [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


class NewEntityCandidate:
    def __init__(self, name, requested_id=None, metadata=None, row_number=None):
        self.name = name
        self.requested_id = requested_id
        self.metadata = metadata or {}
        self.row_number = row_number

    @property
    def key(self):
        return self.name.strip().lower()

    def to_dict(self):
        data = {'name': self.name, 'row': self.row_number}
        if self.requested_id is not None:
            data['id'] = self.requested_id
        return data


class Diff(namedtuple('Diff', ['entity', 'name', 'year', 'month', 'existing', 'uploaded'])):
    __slots__ = ()

    @property
    def key(self):
        return (self.entity, self.year, self.month)

    def to_dict(self):
        return {
            'entity': self.entity,
            'name': self.name,
            'year': self.year,
            'month': self.month,
            'existing': self.existing,
            'uploaded': self.uploaded,
        }


class EntitySnapshot:
    """Known bhakts and monthly_sync values, captured once per upload"""

    def __init__(self, entities=None, records=None):
        self.known_ids = set()
        self.name_index = {}
        self.created_index = {}
        self.created_ids = set()
        self.records = dict(records or {})
        for entity_id, name in entities or []:
            self.add_entity(entity_id, name)

    def add_entity(self, entity_id, name):
        self.known_ids.add(entity_id)
        if name:
            self.name_index.setdefault(str(name).strip().lower(), entity_id)

    def add_created(self, key, entity_id):
        self.known_ids.add(entity_id)
        self.created_ids.add(entity_id)
        self.created_index[key] = entity_id

    def existing_value(self, entity_id, year, month):
        return self.records.get((entity_id, year, month))


class Reconciliation:
    def __init__(self, new_entities, diffs, skipped_rows, total_rows):
        self.new_entities = new_entities
        self.diffs = diffs
        self.skipped_rows = skipped_rows
        self.total_rows = total_rows

    def preview_dict(self):
        return {
            'newEntities': [candidate.to_dict() for candidate in self.new_entities],
            'changes': [diff.to_dict() for diff in self.diffs],
            'totalRows': self.total_rows,
            'skippedRows': self.skipped_rows,
        }


def resolve_row(row, snapshot):
    """Return (entity_id, candidate); both None means the row is skipped"""
    raw_id = row.entity_id
    name = row.name

    # Bhakts created by this upload resolve by name only
    if raw_id is not None and raw_id in snapshot.known_ids and raw_id not in snapshot.created_ids:
        return raw_id, None

    if not name:
        return None, None

    key = name.lower()
    if raw_id is None and key in snapshot.name_index:
        return snapshot.name_index[key], None
    if key in snapshot.created_index:
        return snapshot.created_index[key], None

    requested_id = raw_id if isinstance(raw_id, int) and raw_id > 0 else None
    return None, NewEntityCandidate(name, requested_id, row.metadata(), row.row_number)


def reconcile(upload, snapshot) -> Reconciliation:
    """Compute new-bhakt candidates and per-month differences; no side effects"""
    candidates = {}
    diffs = []
    skipped = 0

    for row in upload.rows:
        entity_id, candidate = resolve_row(row, snapshot)
        if entity_id is None and candidate is None:
            skipped += 1
            continue
        if candidate is not None and candidate.key not in candidates:
            candidates[candidate.key] = candidate

        for cell in row.period_cells:
            year, month = cell.period
            existing = snapshot.existing_value(entity_id, year, month) if entity_id is not None else None
            if existing != cell.value:
                diffs.append(Diff(entity_id, row.name, year, month, existing, cell.value))

    return Reconciliation(list(candidates.values()), diffs, skipped, len(upload.rows))


def _decimal_or_none(value):
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def _date_or_none(value):
    if value is None:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


class MatrixReconciler:
    """Runs preview/apply for one upload against the database"""

    def __init__(self, session=None, backup_service=None):
        self.session = session or db.session
        self.backup_service = backup_service
        self.logger = logging.getLogger(__name__)

    def load_snapshot(self) -> EntitySnapshot:
        entities = self.session.query(Bhakt.id, Bhakt.name).order_by(Bhakt.id).all()
        # Compared as the exported cell shows them, so a paid month without a value reads as ✓
        records = {
            (r.bhakt_id, r.year, r.month): MonthlySync.cell_value(r.donated, r.is_paid)
            for r in self.session.query(MonthlySync.bhakt_id, MonthlySync.year, MonthlySync.month,
                                        MonthlySync.donated, MonthlySync.is_paid)
        }
        return EntitySnapshot(entities, records)

    def run(self, grid, mode='validate'):
        mode = (mode or 'validate').strip().lower()
        if mode == 'validate':
            return self.preview(grid)
        if mode == 'apply':
            return self.apply(grid)
        raise MatrixValidationError('Unknown mode. Use mode=validate or mode=apply')

    def preview(self, grid):
        upload = parse_grid(grid)
        result = reconcile(upload, self.load_snapshot())
        self.logger.info(
            f"Matrix preview: {result.total_rows} rows, {len(result.new_entities)} new bhakts, "
            f"{len(result.diffs)} changes, {result.skipped_rows} skipped"
        )
        return {'success': True, 'preview': result.preview_dict()}

    def apply(self, grid):
        upload = parse_grid(grid)
        snapshot = self.load_snapshot()
        plan = reconcile(upload, snapshot)

        # Pre-image before any write
        backups = []
        if self.backup_service is not None:
            backups = self.backup_service.snapshot_tables(BACKUP_TABLES)

        created, failed = self._create_entities(plan.new_entities, snapshot)
        final = reconcile(upload, snapshot)

        applied = 0
        skipped_changes = 0
        for diff in final.diffs:
            if diff.entity is None:
                skipped_changes += 1
                continue
            try:
                self._upsert(diff)
            except SQLAlchemyError as e:
                self.session.rollback()
                self.logger.error(
                    f"Matrix apply aborted at {diff.entity}/{diff.year}-{diff.month:02d} "
                    f"after {applied} upserts: {e}"
                )
                raise MatrixApplyError(
                    f'Failed to apply changes after {applied} successful updates: {e}',
                    applied=applied, created_entities=created, backups=backups
                ) from e
            applied += 1

        self.logger.info(f"Matrix apply: {applied} monthly_sync upserts, {created} bhakts created, "
                         f"backups: {', '.join(backups) or 'none'}")
        if failed:
            self.logger.warning(f"Matrix apply: {len(failed)} new bhakts could not be created, "
                                f"{skipped_changes} changes not applied")
        return {
            'success': True,
            'applied': applied,
            'createdEntities': created,
            'failedEntities': failed,
            'skippedChanges': skipped_changes,
            'backups': backups,
        }

    def _create_entities(self, candidates, snapshot):
        """Insert new bhakts; returns (count created, failed candidates as dicts)"""
        created = 0
        failed = []
        for candidate in candidates:
            fields = {'name': candidate.name}
            metadata = candidate.metadata
            fields['monthly_donation_amount'] = _decimal_or_none(metadata.get('monthly_donation_amount'))
            fields['carry_forward_balance'] = _decimal_or_none(metadata.get('carry_forward_balance'))
            fields['last_payment_date'] = _date_or_none(metadata.get('last_payment_date'))
            status = metadata.get('payment_status')
            fields['payment_status'] = str(status) if status is not None else None
            if candidate.requested_id is not None and candidate.requested_id not in snapshot.known_ids:
                fields['id'] = candidate.requested_id

            bhakt = Bhakt(**fields)
            try:
                self.session.add(bhakt)
                self.session.commit()
            except SQLAlchemyError as e:
                self.session.rollback()
                self.logger.warning(f"Failed to insert bhakt '{candidate.name}': {e}")
                failed.append(dict(candidate.to_dict(), error=str(e)))
                continue

            snapshot.add_created(candidate.key, bhakt.id)
            created += 1
            self.logger.info(f"Created bhakt {bhakt.id} '{bhakt.name}' from upload row {candidate.row_number}")
        return created, failed

    def _upsert(self, diff):
        record = self.session.query(MonthlySync).filter_by(
            bhakt_id=diff.entity, year=diff.year, month=diff.month
        ).first()
        if record is None:
            record = MonthlySync(bhakt_id=diff.entity, year=diff.year, month=diff.month)
            self.session.add(record)
        record.set_donated(diff.uploaded)
        self.session.commit()

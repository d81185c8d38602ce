import io
import json
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal

import pandas as pd

from ashram_dashboard import db
from ashram_dashboard.errors import BackupError

CONTENT_TYPES = {
    'json': 'application/json',
    'csv': 'text/csv',
    'xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
}


def _jsonable(value):
    if isinstance(value, Decimal):
        as_float = float(value)
        return int(as_float) if as_float.is_integer() else as_float
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def backup_prefix(kind='before-overwrite', now=None):
    """before-overwrite/YYYY-MM-DD/<ISO timestamp with ':' and '.' replaced>"""
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime('%Y-%m-%dT%H-%M-%S-') + f'{now.microsecond // 1000:03d}Z'
    return f'{kind}/{now:%Y-%m-%d}/{stamp}'


class LocalBackupStorage:
    def __init__(self, base_dir):
        self.base_dir = base_dir
        self.logger = logging.getLogger(__name__)

    def save(self, path, content, content_type=None):
        target = os.path.join(self.base_dir, *path.split('/'))
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, 'wb') as f:
            f.write(content)
        return path

    def list(self):
        if not os.path.isdir(self.base_dir):
            return []
        paths = []
        for root, _dirs, files in os.walk(self.base_dir):
            for filename in files:
                relative = os.path.relpath(os.path.join(root, filename), self.base_dir)
                paths.append(relative.replace(os.sep, '/'))
        return sorted(paths)


class GoogleDriveBackupStorage:
    """Stores artifacts as nested folders under <root>/<folder> on Drive"""

    def __init__(self, drive_service, folder='backups'):
        self.drive = drive_service
        self.folder = folder
        self._folder_ids = {}
        self.logger = logging.getLogger(__name__)

    def _folder_id(self, directory):
        full = f'{self.folder}/{directory}' if directory else self.folder
        if full not in self._folder_ids:
            self._folder_ids[full] = self.drive.ensure_path(full)
        return self._folder_ids[full]

    def save(self, path, content, content_type=None):
        directory, _, filename = path.rpartition('/')
        self.drive.upload_bytes(self._folder_id(directory), filename, content,
                                content_type or 'application/octet-stream')
        return path

    def list(self):
        paths = []

        def walk(folder_id, prefix):
            for item in self.drive.list_files(folder_id):
                name = f"{prefix}/{item['name']}" if prefix else item['name']
                if item.get('mimeType') == 'application/vnd.google-apps.folder':
                    walk(item['id'], name)
                else:
                    paths.append(name)

        walk(self._folder_id(''), '')
        return sorted(paths)


class BackupService:
    """Table snapshots (JSON, CSV, XLSX) written to a pluggable storage"""

    def __init__(self, storage, session=None):
        self.storage = storage
        self.session = session or db.session
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config):
        kind = (config.get('BACKUP_STORAGE') or 'local').lower()
        if kind == 'gdrive':
            from ashram_dashboard.services.google_drive_service import GoogleDriveService
            return cls(GoogleDriveBackupStorage(GoogleDriveService.from_config(config)))
        if kind != 'local':
            raise BackupError(f"Unknown BACKUP_STORAGE '{kind}' (use local or gdrive)")
        return cls(LocalBackupStorage(config.get('BACKUP_DIR') or os.path.join(os.getcwd(), 'backups')))

    def read_table(self, table_name):
        table = db.metadata.tables[table_name]
        result = self.session.execute(table.select().order_by(*table.primary_key.columns))
        columns = [column.name for column in table.columns]
        rows = [{key: _jsonable(value) for key, value in row.items()} for row in result.mappings()]
        return columns, rows

    def snapshot_tables(self, tables, prefix=None):
        """Write every table under `prefix`; returns the names that were backed up"""
        prefix = prefix or backup_prefix()
        backed_up = []

        for table_name in tables:
            try:
                columns, rows = self.read_table(table_name)
            except Exception as e:
                self.logger.warning(f"Backup read error for {table_name}: {e}")
                continue

            try:
                payload = json.dumps(rows, ensure_ascii=False, default=str).encode('utf-8')
                self.storage.save(f'{prefix}/{table_name}.json', payload, CONTENT_TYPES['json'])
            except Exception as e:
                self.logger.warning(f"JSON backup failed for {table_name}: {e}")
                continue

            frame = pd.DataFrame(rows, columns=columns)
            if rows:
                try:
                    csv_bytes = frame.to_csv(index=False).encode('utf-8')
                    self.storage.save(f'{prefix}/{table_name}.csv', csv_bytes, CONTENT_TYPES['csv'])
                except Exception as e:
                    self.logger.warning(f"CSV backup failed for {table_name}: {e}")

            try:
                buffer = io.BytesIO()
                # JSON cells (monthly_sync.donated) are written as text
                frame.astype(object).map(
                    lambda v: json.dumps(v) if isinstance(v, (list, dict)) else v
                ).to_excel(buffer, sheet_name=table_name[:31], index=False, engine='openpyxl')
                self.storage.save(f'{prefix}/{table_name}.xlsx', buffer.getvalue(), CONTENT_TYPES['xlsx'])
            except Exception as e:
                self.logger.warning(f"XLSX backup failed for {table_name}: {e}")

            backed_up.append(table_name)

        self.logger.info(f"Backed up {len(backed_up)}/{len(tables)} tables to {prefix}")
        return backed_up

    def save_artifact(self, path, content, content_type=None):
        return self.storage.save(path, content, content_type)

    def list_backups(self):
        return self.storage.list()

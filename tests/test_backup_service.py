"""Tests for table snapshots and backup storage backends."""

import json
import os
from datetime import datetime, timezone

import pytest

from ashram_dashboard.errors import BackupError
from ashram_dashboard.models import BACKUP_TABLES
from ashram_dashboard.services.backup_service import (
    BackupService, GoogleDriveBackupStorage, LocalBackupStorage, backup_prefix
)


class FakeDrive:
    """Stands in for GoogleDriveService; keeps folders and files in dicts"""

    def __init__(self):
        self.folders = {'root': ('', None)}
        self.files = {}
        self.ensured = []

    def ensure_path(self, path):
        self.ensured.append(path)
        parent = 'root'
        for part in path.split('/'):
            match = [fid for fid, (name, p) in self.folders.items() if name == part and p == parent]
            if match:
                parent = match[0]
            else:
                folder_id = f'folder-{len(self.folders)}'
                self.folders[folder_id] = (part, parent)
                parent = folder_id
        return parent

    def upload_bytes(self, folder_id, filename, content, mime_type):
        file_id = f'file-{len(self.files)}'
        self.files[file_id] = (filename, folder_id, content, mime_type)
        return file_id

    def list_files(self, folder_id):
        items = [{'id': fid, 'name': name, 'mimeType': 'application/vnd.google-apps.folder'}
                 for fid, (name, parent) in self.folders.items() if parent == folder_id]
        items += [{'id': fid, 'name': name, 'mimeType': mime}
                  for fid, (name, parent, _, mime) in self.files.items() if parent == folder_id]
        return items


def test_backup_prefix_format():
    now = datetime(2026, 3, 5, 9, 7, 1, 123456, tzinfo=timezone.utc)

    assert backup_prefix(now=now) == 'before-overwrite/2026-03-05/2026-03-05T09-07-01-123Z'
    assert backup_prefix('scheduled', now=now).startswith('scheduled/2026-03-05/')


def test_snapshot_writes_json_csv_and_xlsx(seeded, tmp_path):
    storage = LocalBackupStorage(str(tmp_path))
    service = BackupService(storage)

    backed_up = service.snapshot_tables(BACKUP_TABLES, prefix='before-overwrite/2026-03-05/t1')

    assert backed_up == BACKUP_TABLES
    files = storage.list()
    assert 'before-overwrite/2026-03-05/t1/bhakt.json' in files
    assert 'before-overwrite/2026-03-05/t1/bhakt.csv' in files
    assert 'before-overwrite/2026-03-05/t1/monthly_sync.xlsx' in files
    # Empty table: JSON and XLSX, no CSV
    assert 'before-overwrite/2026-03-05/t1/monthly_donations.json' in files
    assert 'before-overwrite/2026-03-05/t1/monthly_donations.csv' not in files

    with open(tmp_path / 'before-overwrite' / '2026-03-05' / 't1' / 'bhakt.json', encoding='utf-8') as f:
        bhakts = json.load(f)
    assert {b['name'] for b in bhakts} == {'Ravi Kumar', 'Sita Sharma'}
    assert [b['monthly_donation_amount'] for b in bhakts if b['id'] == 7] == [500]


def test_snapshot_logs_and_skips_unknown_table(seeded, tmp_path):
    service = BackupService(LocalBackupStorage(str(tmp_path)))

    assert service.snapshot_tables(['no_such_table', 'bhakt'], prefix='p') == ['bhakt']


def test_snapshot_survives_storage_failure(seeded):
    class BrokenStorage:
        def save(self, path, content, content_type=None):
            raise OSError('disk full')

    assert BackupService(BrokenStorage()).snapshot_tables(BACKUP_TABLES, prefix='p') == []


def test_list_backups_on_missing_directory(tmp_path):
    assert LocalBackupStorage(str(tmp_path / 'missing')).list() == []


def test_drive_storage_nests_folders_and_lists(seeded):
    drive = FakeDrive()
    service = BackupService(GoogleDriveBackupStorage(drive))

    service.snapshot_tables(['bhakt'], prefix='before-overwrite/2026-03-05/t1')

    assert 'backups/before-overwrite/2026-03-05/t1' in drive.ensured
    assert sorted(service.list_backups()) == [
        'before-overwrite/2026-03-05/t1/bhakt.csv',
        'before-overwrite/2026-03-05/t1/bhakt.json',
        'before-overwrite/2026-03-05/t1/bhakt.xlsx',
    ]


def test_from_config_selects_storage(app):
    config = dict(app.config)

    assert isinstance(BackupService.from_config(config).storage, LocalBackupStorage)

    config['BACKUP_STORAGE'] = 'ftp'
    with pytest.raises(BackupError):
        BackupService.from_config(config)


def test_drive_backup_endpoint(client, seeded, monkeypatch):
    from ashram_dashboard.routes import backups as backups_routes

    drive = FakeDrive()
    monkeypatch.setattr(backups_routes.GoogleDriveService, 'from_config', classmethod(lambda cls, config: drive))

    response = client.post('/api/drive-backup')

    assert response.status_code == 200
    body = response.get_json()
    assert body['backups'] == BACKUP_TABLES
    assert body['prefix'].startswith('scheduled/')
    uploaded = [name for name, *_ in drive.files.values()]
    assert body['matrix'] in uploaded
    assert 'year_config.json' in uploaded


def test_drive_backup_without_credentials_fails_cleanly(client, seeded):
    response = client.post('/api/drive-backup')

    assert response.status_code == 500
    assert 'credentials' in response.get_json()['error']


def test_local_storage_writes_nested_paths(tmp_path):
    storage = LocalBackupStorage(str(tmp_path))

    storage.save('a/b/c.txt', b'hi')

    assert os.path.exists(tmp_path / 'a' / 'b' / 'c.txt')
    assert storage.list() == ['a/b/c.txt']

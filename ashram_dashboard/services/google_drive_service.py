import io
import logging

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from ashram_dashboard.errors import DriveError

FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'
TOKEN_URI = 'https://oauth2.googleapis.com/token'
SCOPES = ['https://www.googleapis.com/auth/drive.file']


class GoogleDriveService:
    """Thin Drive v3 wrapper: folders by name, byte uploads, listings"""

    def __init__(self, client_id=None, client_secret=None, refresh_token=None,
                 root_folder='ashramapp', drive=None):
        self.logger = logging.getLogger(__name__)
        self.root_folder_name = root_folder
        self._root_folder_id = None
        self._drive = drive

        if self._drive is None:
            if not (client_id and client_secret and refresh_token):
                raise DriveError('Google Drive credentials are not configured')
            self.credentials = Credentials(
                token=None,
                refresh_token=refresh_token,
                token_uri=TOKEN_URI,
                client_id=client_id,
                client_secret=client_secret,
                scopes=SCOPES,
            )

    @classmethod
    def from_config(cls, config):
        return cls(
            client_id=config.get('GOOGLE_CLIENT_ID'),
            client_secret=config.get('GOOGLE_CLIENT_SECRET'),
            refresh_token=config.get('GOOGLE_REFRESH_TOKEN'),
            root_folder=config.get('GDRIVE_ROOT_FOLDER', 'ashramapp'),
        )

    @property
    def drive(self):
        if self._drive is None:
            self._drive = build('drive', 'v3', credentials=self.credentials, cache_discovery=False)
        return self._drive

    def _find_folder(self, name, parent_id=None):
        escaped = name.replace("'", "\\'")
        query = f"name = '{escaped}' and mimeType = '{FOLDER_MIME_TYPE}' and trashed = false"
        if parent_id:
            query += f" and '{parent_id}' in parents"
        response = self.drive.files().list(q=query, fields='files(id, name)', pageSize=10).execute()
        files = response.get('files', [])
        return files[0]['id'] if files else None

    def ensure_folder(self, name, parent_id=None):
        """Return the id of folder `name` under `parent_id`, creating it if needed"""
        try:
            folder_id = self._find_folder(name, parent_id)
            if folder_id:
                return folder_id

            metadata = {'name': name, 'mimeType': FOLDER_MIME_TYPE}
            if parent_id:
                metadata['parents'] = [parent_id]
            folder = self.drive.files().create(body=metadata, fields='id').execute()
            self.logger.info(f"Created Drive folder '{name}' ({folder['id']})")
            return folder['id']
        except HttpError as e:
            raise DriveError(f"Could not ensure Drive folder '{name}': {e}") from e

    def root_folder_id(self):
        if self._root_folder_id is None:
            self._root_folder_id = self.ensure_folder(self.root_folder_name)
        return self._root_folder_id

    def ensure_path(self, path):
        """Ensure nested folders for 'a/b/c' below the root folder; returns the leaf id"""
        parent_id = self.root_folder_id()
        for part in [p for p in path.split('/') if p]:
            parent_id = self.ensure_folder(part, parent_id)
        return parent_id

    def upload_bytes(self, folder_id, filename, content, mime_type):
        media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type, resumable=False)
        metadata = {'name': filename, 'parents': [folder_id]}
        try:
            uploaded = self.drive.files().create(body=metadata, media_body=media, fields='id, name').execute()
        except HttpError as e:
            raise DriveError(f"Upload of '{filename}' failed: {e}") from e
        self.logger.info(f"Uploaded '{filename}' to Drive ({uploaded['id']})")
        return uploaded['id']

    def list_files(self, folder_id):
        files = []
        page_token = None
        try:
            while True:
                response = self.drive.files().list(
                    q=f"'{folder_id}' in parents and trashed = false",
                    fields='nextPageToken, files(id, name, mimeType, createdTime)',
                    pageToken=page_token,
                ).execute()
                files.extend(response.get('files', []))
                page_token = response.get('nextPageToken')
                if not page_token:
                    break
        except HttpError as e:
            raise DriveError(f'Could not list Drive folder {folder_id}: {e}') from e
        return files

"""Workbook download from Google Drive."""

from __future__ import annotations

import io
import logging
from typing import Protocol

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseDownload

from fuel_ledger.config import Settings
from fuel_ledger.exceptions import IntegrationError
from fuel_ledger.excel.config import DRIVE_SCOPES, GOOGLE_SHEET_MIME, XLSX_MIME

logger = logging.getLogger(__name__)


class WorkbookDownloader(Protocol):
    def download(self, file_id: str) -> bytes: ...


def has_credentials(settings: Settings) -> bool:
    return bool(
        settings.GOOGLE_SHEETS_CREDENTIALS_FILE
        or (settings.GOOGLE_SHEETS_CLIENT_EMAIL and settings.GOOGLE_SHEETS_PRIVATE_KEY)
    )


def load_credentials(settings: Settings) -> Credentials:
    """Service-account credentials from a key file or inline env values."""
    if settings.GOOGLE_SHEETS_CREDENTIALS_FILE:
        return Credentials.from_service_account_file(
            settings.GOOGLE_SHEETS_CREDENTIALS_FILE, scopes=DRIVE_SCOPES
        )
    if settings.GOOGLE_SHEETS_CLIENT_EMAIL and settings.GOOGLE_SHEETS_PRIVATE_KEY:
        info = {
            "type": "service_account",
            "client_email": settings.GOOGLE_SHEETS_CLIENT_EMAIL,
            # .env files carry the key with escaped newlines
            "private_key": settings.GOOGLE_SHEETS_PRIVATE_KEY.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        }
        return Credentials.from_service_account_info(info, scopes=DRIVE_SCOPES)
    raise IntegrationError("No Google credentials configured")


class DriveWorkbookDownloader:
    """Fetches the spreadsheet as .xlsx bytes through the Drive v3 API.

    Blocking; callers run it in a worker thread.
    """

    def __init__(self, credentials: Credentials) -> None:
        self.service = build("drive", "v3", credentials=credentials, cache_discovery=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "DriveWorkbookDownloader":
        return cls(load_credentials(settings))

    def download(self, file_id: str) -> bytes:
        try:
            meta = self.service.files().get(fileId=file_id, fields="mimeType").execute()
            if meta.get("mimeType") == GOOGLE_SHEET_MIME:
                request = self.service.files().export_media(
                    fileId=file_id, mimeType=XLSX_MIME
                )
            else:
                request = self.service.files().get_media(fileId=file_id)

            buffer = io.BytesIO()
            downloader = MediaIoBaseDownload(buffer, request)
            done = False
            while not done:
                _, done = downloader.next_chunk()
        except Exception as e:
            raise IntegrationError(f"Failed to download workbook: {e}") from e

        logger.info("Downloaded workbook %s (%d bytes)", file_id, buffer.tell())
        return buffer.getvalue()

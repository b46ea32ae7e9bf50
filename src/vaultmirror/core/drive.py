"""Google Drive implementation of the remote file store."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import google_auth_httplib2
import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from vaultmirror.core.config import (
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_REFRESH_TOKEN,
)
from vaultmirror.core.remote import (
    RemoteEntry,
    RemoteFileNotFoundError,
    RemoteNotConfiguredError,
    RemotePage,
    RemoteStoreError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
TOKEN_URI = "https://oauth2.googleapis.com/token"
SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]
PAGE_SIZE = 1000
LIST_FIELDS = "nextPageToken, files(id, name, mimeType, modifiedTime)"


def escape_query_value(value: str) -> str:
    """Escape a value for use inside a single-quoted Drive query string."""
    return str(value).replace("\\", "\\\\").replace("'", "\\'")


def _to_entry(data: dict[str, Any]) -> RemoteEntry:
    mime_type = data.get("mimeType")
    return RemoteEntry(
        id=data["id"],
        name=data.get("name", ""),
        is_folder=mime_type == FOLDER_MIME_TYPE,
        modified_time=data.get("modifiedTime"),
        mime_type=mime_type,
    )


class DriveStore:
    """Reads folders and files from Google Drive (API v3)."""

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        refresh_token: str | None = None,
        service: Any | None = None,
    ):
        """
        Initialize the Drive store.

        Args:
            client_id: OAuth client id (defaults to env)
            client_secret: OAuth client secret (defaults to env)
            refresh_token: OAuth refresh token (defaults to env)
            service: Prebuilt Drive service (for testing)
        """
        self.client_id = client_id or GOOGLE_CLIENT_ID
        self.client_secret = client_secret or GOOGLE_CLIENT_SECRET
        self.refresh_token = refresh_token or GOOGLE_REFRESH_TOKEN
        self._credentials: Credentials | None = None
        self._service = service

    @property
    def credentials(self) -> Credentials | None:
        if self._credentials is None and self.refresh_token:
            self._credentials = Credentials(
                token=None,
                refresh_token=self.refresh_token,
                client_id=self.client_id,
                client_secret=self.client_secret,
                token_uri=TOKEN_URI,
                scopes=SCOPES,
            )
        return self._credentials

    @property
    def service(self) -> Any:
        if self._service is None:
            credentials = self.credentials
            if credentials is None or not self.client_id or not self.client_secret:
                raise RemoteNotConfiguredError("Google Drive credentials not configured")
            self._service = build(
                "drive", "v3", credentials=credentials, cache_discovery=False
            )
        return self._service

    def _execute(self, request: Any) -> Any:
        # httplib2 connections are not thread-safe; use one per call
        credentials = self.credentials
        if credentials is None:
            return request.execute()
        http = google_auth_httplib2.AuthorizedHttp(credentials, http=httplib2.Http())
        return request.execute(http=http)

    async def _call(self, fn: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(fn)
        except HttpError as exc:
            if exc.resp is not None and exc.resp.status == 404:
                raise RemoteFileNotFoundError(f"Google Drive: not found: {exc}") from exc
            raise RemoteStoreError(f"Google Drive API error: {exc}") from exc
        except GoogleAuthError as exc:
            raise RemoteStoreError(f"Google Drive auth error: {exc}") from exc
        except (httplib2.HttpLib2Error, OSError) as exc:
            raise RemoteStoreError(f"Google Drive network error: {exc}") from exc

    async def list_children(
        self, folder_id: str, page_token: str | None = None
    ) -> RemotePage:
        """List one page of non-trashed children of a folder."""
        service = self.service

        def _list_sync() -> dict[str, Any]:
            request = service.files().list(
                q=f"'{escape_query_value(folder_id)}' in parents and trashed = false",
                fields=LIST_FIELDS,
                pageSize=PAGE_SIZE,
                pageToken=page_token,
            )
            return self._execute(request)

        response = await self._call(_list_sync)
        return RemotePage(
            entries=[_to_entry(item) for item in response.get("files", [])],
            next_page_token=response.get("nextPageToken"),
        )

    async def get_content(self, file_id: str) -> bytes:
        """Download a file's raw bytes."""
        service = self.service

        def _download_sync() -> bytes:
            return self._execute(service.files().get_media(fileId=file_id))

        content = await self._call(_download_sync)
        if isinstance(content, str):
            return content.encode("utf-8")
        return content

    async def find_child(self, folder_id: str, name: str) -> RemoteEntry | None:
        """Find a non-trashed file by exact name directly inside a folder."""
        service = self.service

        def _find_sync() -> dict[str, Any]:
            request = service.files().list(
                q=(
                    f"'{escape_query_value(folder_id)}' in parents "
                    f"and name = '{escape_query_value(name)}' and trashed = false"
                ),
                fields="files(id, name, mimeType, modifiedTime)",
                pageSize=1,
            )
            return self._execute(request)

        response = await self._call(_find_sync)
        files = response.get("files", [])
        if not files:
            return None
        return _to_entry(files[0])

    def health_check(self) -> tuple[bool, str]:
        """
        Check that Drive credentials are present.

        Returns:
            (success, message)
        """
        if not self.refresh_token or not self.client_id or not self.client_secret:
            return False, "Google Drive not configured"
        return True, "Google Drive configured"

"""Google Drive folder sync.

Lists the files of one Drive folder and fetches their text for indexing,
authenticating as a service account over the Drive v3 and Docs v1 REST APIs.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from content_rag.core.exceptions import SourceReadError
from content_rag.rag.connectors.base import SourceConnector
from content_rag.rag.extractors import DocumentExtractor, flatten_google_doc
from content_rag.rag.models import ContentType, IngestionRecord

logger = logging.getLogger(__name__)

DRIVE_SCOPES = [
    "https://www.googleapis.com/auth/drive.readonly",
    "https://www.googleapis.com/auth/documents.readonly",
]
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"

GOOGLE_DOC_MIME = "application/vnd.google-apps.document"
GOOGLE_FOLDER_MIME = "application/vnd.google-apps.folder"

# Refresh this long before the access token actually expires
TOKEN_EXPIRY_MARGIN = 60


class TokenProvider(Protocol):
    async def get_token(self) -> str: ...


class ServiceAccountTokenProvider:
    """OAuth2 access tokens for a Google service account.

    Signs a JWT-bearer assertion with the account's private key and
    exchanges it at the token endpoint. Tokens are cached until shortly
    before they expire.
    """

    def __init__(
        self,
        service_account_info: dict[str, Any],
        http_client: httpx.AsyncClient,
        scopes: list[str] | None = None,
    ):
        self.info = service_account_info
        self.http = http_client
        self.scopes = scopes or DRIVE_SCOPES
        self._token: str | None = None
        self._expires_at: float = 0
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        async with self._lock:
            if self._token and time.time() < self._expires_at - TOKEN_EXPIRY_MARGIN:
                return self._token

            token_uri = self.info.get("token_uri", GOOGLE_TOKEN_URI)
            now = int(time.time())
            claims = {
                "iss": self.info["client_email"],
                "scope": " ".join(self.scopes),
                "aud": token_uri,
                "iat": now,
                "exp": now + 3600,
            }
            headers = {"kid": self.info["private_key_id"]} if self.info.get("private_key_id") else None

            try:
                assertion = jwt.encode(
                    claims, self.info["private_key"], algorithm="RS256", headers=headers
                )
            except JOSEError as e:
                raise SourceReadError(f"Failed to sign service account assertion: {e}") from e

            try:
                response = await self.http.post(
                    token_uri,
                    data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
                )
                response.raise_for_status()
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise SourceReadError(f"Service account token exchange failed: {e}") from e

            self._token = data["access_token"]
            self._expires_at = now + int(data.get("expires_in", 3600))
            return self._token


@dataclass
class DriveFile:
    """File metadata from a folder listing."""

    id: str
    name: str
    mime_type: str
    modified_time: str | None = None
    web_view_link: str | None = None


class GoogleDriveClient:
    """Minimal Drive/Docs REST client for folder sync."""

    DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
    DOCS_API_BASE = "https://docs.googleapis.com/v1"
    PAGE_SIZE = 100

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token_provider: TokenProvider,
        extractor: DocumentExtractor | None = None,
    ):
        self.http = http_client
        self.token_provider = token_provider
        self.extractor = extractor or DocumentExtractor()

    async def _get(self, url: str, **params: str) -> httpx.Response:
        token = await self.token_provider.get_token()
        try:
            response = await self.http.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SourceReadError(f"Drive API request failed: {e}") from e
        return response

    async def list_files(self, folder_id: str) -> list[DriveFile]:
        """List the non-trashed files directly inside a folder.

        Sub-folders are skipped.
        """
        files: list[DriveFile] = []
        page_token = None

        while True:
            params = {
                "q": f"'{folder_id}' in parents and trashed=false",
                "fields": "nextPageToken, files(id,name,mimeType,modifiedTime,webViewLink)",
                "pageSize": str(self.PAGE_SIZE),
            }
            if page_token:
                params["pageToken"] = page_token

            data = (await self._get(f"{self.DRIVE_API_BASE}/files", **params)).json()

            for item in data.get("files", []):
                if item.get("mimeType") == GOOGLE_FOLDER_MIME:
                    continue
                files.append(
                    DriveFile(
                        id=item["id"],
                        name=item.get("name", item["id"]),
                        mime_type=item.get("mimeType", ""),
                        modified_time=item.get("modifiedTime"),
                        web_view_link=item.get("webViewLink"),
                    )
                )

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        logger.info(f"[Drive] Found {len(files)} files in folder {folder_id}")
        return files

    async def get_file_content(self, file_id: str, mime_type: str) -> str:
        """Fetch a file's text.

        Google Docs are read through the Docs API and flattened. Types the
        extractor knows (plain text, markdown, HTML, CSV, PDF, DOCX) are
        downloaded and extracted. Other text files are downloaded as-is, and
        anything else is exported by Drive as plain text.
        """
        if mime_type == GOOGLE_DOC_MIME:
            response = await self._get(f"{self.DOCS_API_BASE}/documents/{file_id}")
            return flatten_google_doc(response.json())

        if self.extractor.supports(mime_type):
            response = await self._get(f"{self.DRIVE_API_BASE}/files/{file_id}", alt="media")
            return self.extractor.extract(response.content, mime_type)

        if mime_type.startswith("text/"):
            response = await self._get(f"{self.DRIVE_API_BASE}/files/{file_id}", alt="media")
            return response.text

        response = await self._get(
            f"{self.DRIVE_API_BASE}/files/{file_id}/export", mimeType="text/plain"
        )
        return response.text


class GoogleDriveConnector(SourceConnector):
    """Files synced from a configured Drive folder."""

    content_type = ContentType.GOOGLE_DRIVE

    def __init__(self, client: GoogleDriveClient, folder_id: str):
        self.client = client
        self.folder_id = folder_id

    async def iter_records(self, tenant_id: str) -> AsyncIterator[IngestionRecord]:
        logger.info(f"[Drive] Starting sync of folder {self.folder_id}")
        files = await self.client.list_files(self.folder_id)

        synced = 0
        for file in files:
            try:
                content = await self.client.get_file_content(file.id, file.mime_type)
            except Exception as e:
                # One bad file must not stop the sync
                logger.warning(f"[Drive] Skipping file '{file.name}' ({file.id}): {e}")
                continue

            content = content.strip()
            if not content:
                logger.debug(f"[Drive] Skipping empty file '{file.name}'")
                continue

            synced += 1
            yield IngestionRecord(
                source_id=f"drive_{file.id}",
                content_type=self.content_type,
                tenant_id=tenant_id,
                title=file.name,
                content=content,
                url=file.web_view_link or "",
                tags=["google-drive"],
                created_at=file.modified_time,
                updated_at=file.modified_time,
                drive_file_id=file.id,
            )

        logger.info(f"[Drive] Synced {synced}/{len(files)} files")

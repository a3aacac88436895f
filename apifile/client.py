"""Facade wiring configuration, credentials, upload sessions and the files client."""

from pathlib import Path
from typing import Optional

import httpx

from apifile.config import Config
from apifile.credentials import CredentialProvider, OIDCCredentialProvider
from apifile.events import UploadObserver
from apifile.files_client import DownloadProgress, DownloadResult, FilesClient
from apifile.schemas import FileRecord
from apifile.session import UploadSession, UploadSource
from apifile.transport import ChunkTransport
from apifile.types import UploadOutcome
from common.logging_config import get_logger

logger = get_logger(__name__)


class ApifileClient:
    """
    Entry point for uploads, search and download against one apifile deployment.

    Every upload runs in its own UploadSession, so concurrent uploads from
    different threads get distinct upload ids and share only the credentials.
    """

    def __init__(
        self,
        config: Config,
        credentials: Optional[CredentialProvider] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize client.

        Args:
            config: Configuration instance
            credentials: Token provider (defaults to a Keycloak provider built from config)
            http_client: Optional shared httpx client (used for testing)
        """
        self.config = config
        self.http = http_client or httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout()
        )
        self.credentials = credentials or OIDCCredentialProvider(config, http_client=self.http)
        self.transport = ChunkTransport(config, http_client=self.http)
        self.files = FilesClient(config, self.credentials, http_client=self.http)
        logger.info(f"Initialized ApifileClient [base_url={config.get_base_url()}]")

    def new_session(self, observer: Optional[UploadObserver] = None) -> UploadSession:
        return UploadSession(self.transport, self.credentials, self.config, observer=observer)

    def upload_file(
        self,
        source: UploadSource,
        observer: Optional[UploadObserver] = None,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> UploadOutcome:
        """
        Upload one file in a fresh session.

        Args:
            source: Path or seekable binary file object
            observer: Receives progress and status notifications
            filename: Name sent to the server
            content_type: MIME type override

        Returns:
            UploadOutcome of the session
        """
        session = self.new_session(observer)
        return session.upload(source, filename=filename, content_type=content_type)

    def login(self, username: str, password: str) -> str:
        return self._oidc().login(username, password)

    def logout(self) -> None:
        self._oidc().logout()

    def user_info(self) -> Optional[dict]:
        return self._oidc().user_info()

    def search(self, query: str) -> list[FileRecord]:
        return self.files.search(query)

    def download(
        self,
        file_id: str,
        output_dir: Optional[Path] = None,
        on_progress: Optional[DownloadProgress] = None,
    ) -> DownloadResult:
        return self.files.download(file_id, output_dir=output_dir, on_progress=on_progress)

    def health(self) -> dict:
        return self.files.health()

    def _oidc(self) -> OIDCCredentialProvider:
        if not isinstance(self.credentials, OIDCCredentialProvider):
            raise TypeError(f"{type(self.credentials).__name__} does not support interactive login")
        return self.credentials

    def close(self) -> None:
        """Close the shared HTTP session."""
        self.http.close()

"""HTTP client for the apifile search, download and health endpoints."""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote

import httpx
from pydantic import ValidationError as SchemaValidationError

from apifile.config import Config
from apifile.credentials import CredentialProvider
from apifile.schemas import FileRecord
from common.constants import DOWNLOAD_PATH, HEALTH_PATH, READ_BLOCK_SIZE, SEARCH_PATH
from common.exceptions import ApiConnectionError, ApiError, CredentialRenewalError, NoCredentialError
from common.logging_config import get_logger

logger = get_logger(__name__)

DownloadProgress = Callable[[int, Optional[int]], None]

_FILENAME_PATTERN = re.compile(r'filename\*=([^;]+)|filename="([^"]+)"|filename=([^;]+)', re.IGNORECASE)


def parse_content_disposition(header_value: Optional[str]) -> Optional[str]:
    """
    Extract the suggested filename from a Content-Disposition header.

    Prefers the RFC 5987 form (filename*=UTF-8''...), then the quoted and bare
    filename= forms.

    Args:
        header_value: Raw header value, e.g. 'attachment; filename="a.pdf"'

    Returns:
        Decoded filename, or None when absent or malformed
    """
    if not header_value:
        return None

    marker = "filename*=UTF-8''"
    index = header_value.find(marker)
    if index != -1:
        encoded = header_value[index + len(marker):].split(';', 1)[0]
        try:
            name = unquote(encoded.strip().replace('"', ''), errors='strict')
        except UnicodeDecodeError:
            return None
        return name or None

    match = _FILENAME_PATTERN.search(header_value)
    if not match:
        return None
    raw = next((group for group in match.groups() if group), '')
    raw = raw.strip().replace('"', '')
    if "''" in raw:
        raw = raw.split("''", 1)[1]
    try:
        name = unquote(raw, errors='strict')
    except UnicodeDecodeError:
        return None
    return name or None


def _safe_filename(name: Optional[str], fallback: str) -> str:
    candidate = Path(name).name if name else ''
    if candidate in ('', '.', '..'):
        return fallback
    return candidate


@dataclass(frozen=True)
class DownloadResult:
    path: Path
    filename: str
    size: int


class FilesClient:
    """Search and download client with bearer authentication."""

    def __init__(
        self,
        config: Config,
        credentials: CredentialProvider,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize files client.

        Args:
            config: Configuration instance
            credentials: Provider of bearer tokens
            http_client: Optional preconfigured httpx client (used for testing)
        """
        self.config = config
        self.credentials = credentials
        self.http = http_client or httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout()
        )

    def _token(self) -> str:
        token = self.credentials.get_token()
        if not token:
            raise NoCredentialError("Not logged in. Please run: login <username> <password>")
        return token

    def _send(self, request_factory: Callable[[str], httpx.Request], stream: bool = False) -> httpx.Response:
        """
        Send a request, renewing the token once on 401.

        Args:
            request_factory: Builds the request for a given bearer token
            stream: Leave the body unread for incremental consumption

        Returns:
            Response with a 2xx status

        Raises:
            ApiError: On non-2xx status
            ApiConnectionError: On timeout or network failure
        """
        token = self._token()
        renewed = False
        while True:
            request = request_factory(token)
            try:
                response = self.http.send(request, stream=stream)
            except httpx.TimeoutException as e:
                raise ApiConnectionError("Request timed out. Server may be overloaded.") from e
            except httpx.TransportError as e:
                raise ApiConnectionError("Cannot connect to the file API. Is it running?") from e
            except httpx.RequestError as e:
                raise ApiConnectionError(f"Request failed: {type(e).__name__}") from e

            logger.debug(f"Response received: {request.method} {request.url.path} status={response.status_code}")

            if response.is_success:
                return response

            response.read()
            body = response.text
            response.close()

            if response.status_code == 401 and not renewed and self.credentials.can_renew():
                renewed = True
                try:
                    token = self.credentials.renew(stale_token=token)
                    continue
                except CredentialRenewalError as e:
                    logger.warning(f"Token renewal failed: {e}")

            raise ApiError(
                f"{request.method} {request.url.path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

    def search(self, query: str) -> list[FileRecord]:
        """
        Search files by name.

        Args:
            query: Search text

        Returns:
            Matching file records (empty when the response is not a list)
        """
        logger.info(f"Searching files: query={query!r}")
        response = self._send(
            lambda token: self.http.build_request(
                'GET',
                SEARCH_PATH,
                params={'query': query},
                headers={'Authorization': f'Bearer {token}', 'Accept': 'application/json'},
            )
        )
        try:
            data = response.json()
        except ValueError:
            logger.warning("Search response is not JSON")
            return []
        if not isinstance(data, list):
            logger.warning(f"Unexpected search response type: {type(data).__name__}")
            return []

        records = []
        for item in data:
            try:
                records.append(FileRecord.model_validate(item))
            except SchemaValidationError as e:
                logger.warning(f"Skipping malformed search record: {e.error_count()} error(s)")
        return records

    def download(
        self,
        file_id: str,
        output_dir: Optional[Path] = None,
        on_progress: Optional[DownloadProgress] = None,
    ) -> DownloadResult:
        """
        Download a file by id, streaming it to disk.

        Args:
            file_id: Remote file identifier
            output_dir: Destination directory (defaults to the configured download_dir)
            on_progress: Called with (downloaded_bytes, total_bytes or None) after each block

        Returns:
            DownloadResult with the saved path, filename and byte count
        """
        output_dir = Path(output_dir) if output_dir is not None else self.config.get_download_dir()
        logger.info(f"Downloading file: id={file_id} output_dir={output_dir}")

        response = self._send(
            lambda token: self.http.build_request(
                'GET',
                f"{DOWNLOAD_PATH}/{file_id}",
                headers={'Authorization': f'Bearer {token}'},
            ),
            stream=True,
        )
        try:
            filename = _safe_filename(
                parse_content_disposition(response.headers.get('Content-Disposition')),
                fallback=_safe_filename(file_id, 'download'),
            )
            total_size = int(response.headers.get('Content-Length', 0)) or None

            output_dir.mkdir(parents=True, exist_ok=True)
            output_file = output_dir / filename
            downloaded = 0
            with open(output_file, 'wb') as f:
                for block in response.iter_bytes(chunk_size=READ_BLOCK_SIZE):
                    f.write(block)
                    downloaded += len(block)
                    if on_progress:
                        on_progress(downloaded, total_size)
        except httpx.TimeoutException as e:
            raise ApiConnectionError("Download timed out. Server may be overloaded.") from e
        except httpx.TransportError as e:
            raise ApiConnectionError(f"Download interrupted: {type(e).__name__}") from e
        except httpx.RequestError as e:
            raise ApiConnectionError(f"Download failed: {type(e).__name__}") from e
        finally:
            response.close()

        logger.info(f"Downloaded: {filename} ({downloaded} bytes) to {output_file}")
        return DownloadResult(path=output_file, filename=filename, size=downloaded)

    def health(self) -> dict:
        """
        Check API health.

        Returns:
            Parsed JSON body of the health endpoint
        """
        try:
            response = self.http.get(HEALTH_PATH, headers={'Accept': 'application/json'})
        except httpx.TimeoutException as e:
            raise ApiConnectionError("Request timed out. Server may be overloaded.") from e
        except httpx.TransportError as e:
            raise ApiConnectionError("Cannot connect to the file API. Is it running?") from e
        except httpx.RequestError as e:
            raise ApiConnectionError(f"Request failed: {type(e).__name__}") from e
        if not response.is_success:
            raise ApiError(f"Health check returned HTTP {response.status_code}", response.status_code, response.text)
        try:
            data = response.json()
        except ValueError:
            return {'status': response.text}
        return data if isinstance(data, dict) else {'status': data}

    def close(self) -> None:
        """Close the HTTP session."""
        self.http.close()

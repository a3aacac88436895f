"""HTTP transport for chunk and finalize requests against the apifile upload API."""

from typing import Optional

import httpx
from pydantic import ValidationError as SchemaValidationError

from apifile.config import Config
from apifile.schemas import ChunkUploadResponse
from apifile.types import Chunk, ChunkUploadResult, FileMeta, SessionMeta
from common.constants import (
    FIELD_CHECKSUM,
    FIELD_CHECKSUM_ALGORITHM,
    FIELD_CHUNK_SIZE,
    FIELD_FILE,
    FIELD_FILE_SIZE,
    FIELD_FILENAME,
    FIELD_PART_NUMBER,
    FIELD_TOTAL_PARTS,
    FIELD_UPLOAD_ID,
    FINAL_CHUNK_FIELDS,
)
from common.exceptions import ChunkTransportError, FinalizeError, ProtocolShapeError
from common.logging_config import get_logger

logger = get_logger(__name__)


def auth_headers(token: str) -> dict:
    return {
        'Authorization': f'Bearer {token}',
        'Accept': 'application/json',
    }


def parse_upload_response(response: httpx.Response) -> ChunkUploadResult:
    """
    Parse a successful upload or finalize response.

    Args:
        response: HTTP response with 2xx status

    Returns:
        ChunkUploadResult with the reported file records

    Raises:
        ProtocolShapeError: If the body is not JSON or lacks the file record list
    """
    try:
        payload = response.json()
    except ValueError as e:
        raise ProtocolShapeError(f"Response is not JSON: {e}", body=response.text) from e

    try:
        parsed = ChunkUploadResponse.model_validate(payload)
    except SchemaValidationError as e:
        raise ProtocolShapeError(
            f"Response lacks the expected file record list: {e.error_count()} error(s)",
            body=response.text,
            payload=payload,
        ) from e

    return ChunkUploadResult(files=tuple(parsed.files), raw=payload)


class ChunkTransport:
    """
    Sends one authenticated multipart request per chunk.

    Holds no state across calls beyond the HTTP connection pool.
    """

    def __init__(self, config: Config, http_client: Optional[httpx.Client] = None):
        """
        Initialize chunk transport.

        Args:
            config: Configuration instance
            http_client: Optional preconfigured httpx client (used for testing)
        """
        self.config = config
        self.http = http_client or httpx.Client(timeout=config.get_timeout())
        logger.info(f"Initialized ChunkTransport [upload_endpoint={config.get_upload_endpoint()}]")

    def _resolve(self, endpoint: str) -> str:
        if endpoint.startswith(('http://', 'https://')):
            return endpoint
        return f"{self.config.get_base_url()}/{endpoint.lstrip('/')}"

    def build_form(
        self,
        chunk: Chunk,
        file_meta: FileMeta,
        session_meta: SessionMeta,
        checksum: Optional[str] = None,
        checksum_algorithm: Optional[str] = None,
    ) -> dict:
        """
        Build the non-file multipart fields for one chunk.

        Part numbers on the wire are 1-based.
        """
        is_last = chunk.index + 1 == session_meta.total_chunks
        data = {
            FIELD_UPLOAD_ID: session_meta.upload_id,
            FIELD_PART_NUMBER: str(chunk.index + 1),
            FIELD_TOTAL_PARTS: str(session_meta.total_chunks),
            FIELD_FILENAME: file_meta.filename,
            FIELD_FILE_SIZE: str(file_meta.total_size),
            FIELD_CHUNK_SIZE: str(chunk.size),
        }
        if checksum:
            data[FIELD_CHECKSUM] = checksum
            if checksum_algorithm:
                data[FIELD_CHECKSUM_ALGORITHM] = checksum_algorithm
        flag = 'true' if is_last else 'false'
        for name in FINAL_CHUNK_FIELDS:
            data[name] = flag
        return data

    def send_chunk(
        self,
        chunk: Chunk,
        file_meta: FileMeta,
        session_meta: SessionMeta,
        token: str,
        checksum: Optional[str] = None,
        checksum_algorithm: Optional[str] = None,
    ) -> ChunkUploadResult:
        """
        Send one chunk and parse the server's response.

        Args:
            chunk: Chunk to send
            file_meta: Metadata of the whole file
            session_meta: Upload id and total chunk count
            token: Bearer token
            checksum: Optional digest of the chunk's bytes
            checksum_algorithm: Name of the digest algorithm

        Returns:
            ChunkUploadResult for this chunk

        Raises:
            ChunkTransportError: On non-2xx status, timeout or network failure
            ProtocolShapeError: If a 2xx body has an unexpected shape
        """
        endpoint = self.config.get_upload_endpoint()
        data = self.build_form(chunk, file_meta, session_meta, checksum, checksum_algorithm)
        files = {FIELD_FILE: (file_meta.filename, chunk.read(), file_meta.content_type)}
        timeout = self.config.get_chunk_timeout(chunk.size)

        logger.debug(
            f"Sending part {chunk.index + 1}/{session_meta.total_chunks} "
            f"bytes={chunk.byte_start}-{chunk.byte_end} size={chunk.size} "
            f"last={chunk.index + 1 == session_meta.total_chunks} [upload_id={session_meta.upload_id}]"
        )

        try:
            response = self.http.post(
                endpoint,
                data=data,
                files=files,
                headers=auth_headers(token),
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise ChunkTransportError(
                f"Part {chunk.index + 1} timed out after {timeout:.1f}s", status_code=None, body=str(e)
            ) from e
        except httpx.TransportError as e:
            raise ChunkTransportError(
                f"Network error on part {chunk.index + 1}: {type(e).__name__}", status_code=None, body=str(e)
            ) from e
        except httpx.RequestError as e:
            raise ChunkTransportError(
                f"Request error on part {chunk.index + 1}: {type(e).__name__}",
                status_code=None,
                body=str(e),
                transient=False,
            ) from e

        logger.debug(
            f"Part {chunk.index + 1} response status={response.status_code} [upload_id={session_meta.upload_id}]"
        )

        if not response.is_success:
            raise ChunkTransportError(
                f"HTTP {response.status_code} on part {chunk.index + 1}",
                status_code=response.status_code,
                body=response.text,
            )

        return parse_upload_response(response)

    def finalize(
        self,
        endpoint: str,
        file_meta: FileMeta,
        session_meta: SessionMeta,
        token: str,
    ) -> Optional[ChunkUploadResult]:
        """
        Ask the server to assemble previously sent chunks.

        Args:
            endpoint: Finalize path or absolute URL
            file_meta: Metadata of the whole file
            session_meta: Upload id and total chunk count
            token: Bearer token

        Returns:
            Parsed result when the response carries file records, otherwise None

        Raises:
            FinalizeError: On non-2xx status, timeout or network failure
        """
        url = self._resolve(endpoint)
        data = {
            FIELD_UPLOAD_ID: session_meta.upload_id,
            FIELD_FILENAME: file_meta.filename,
            FIELD_TOTAL_PARTS: str(session_meta.total_chunks),
            FIELD_FILE_SIZE: str(file_meta.total_size),
        }
        try:
            response = self.http.post(url, data=data, headers=auth_headers(token))
        except httpx.HTTPError as e:
            raise FinalizeError(f"Finalize request to {endpoint} failed: {type(e).__name__}", endpoint=endpoint) from e

        if not response.is_success:
            raise FinalizeError(
                f"Finalize at {endpoint} returned HTTP {response.status_code}",
                endpoint=endpoint,
                status_code=response.status_code,
                body=response.text,
            )

        try:
            return parse_upload_response(response)
        except ProtocolShapeError:
            logger.debug(f"Finalize at {endpoint} accepted without file records [upload_id={session_meta.upload_id}]")
            return None

    def close(self) -> None:
        """Close the HTTP client."""
        self.http.close()

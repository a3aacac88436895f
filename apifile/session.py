"""Sequential chunked upload session with credential renewal and finalize reconciliation."""

import mimetypes
import os
import threading
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Union

from apifile.checksum import compute_chunk_checksum
from apifile.chunker import FileChunker
from apifile.config import Config
from apifile.credentials import CredentialProvider
from apifile.events import UploadObserver
from apifile.reconciler import reconcile
from apifile.transport import ChunkTransport
from apifile.types import (
    Chunk,
    ChunkUploadResult,
    FileMeta,
    ProgressEvent,
    SessionMeta,
    SessionState,
    UploadOutcome,
)
from common.exceptions import (
    ChecksumError,
    ChunkTransportError,
    CredentialRenewalError,
    FinalizeError,
    NoCredentialError,
    ProtocolShapeError,
    SessionBusyError,
    ValidationError,
)
from common.logging_config import get_logger

logger = get_logger(__name__)

UploadSource = Union[str, os.PathLike, BinaryIO]


def new_upload_id() -> str:
    """Generate a client-side upload identifier, unique per upload."""
    return uuid.uuid4().hex


@dataclass
class _SessionRecord:
    """In-memory state of the upload in flight."""
    upload_id: str
    filename: str
    total_size: int
    chunk_size: int
    total_chunks: int
    retry_budget: int
    chunk_cursor: int = 0


class UploadSession:
    """
    Uploads one file at a time as a strictly sequential series of chunks.

    Chunk i+1 is never sent before chunk i has succeeded. A 401 triggers one
    credential renewal and a resend of the same chunk (bounded by the retry
    budget); a transient failure on the last chunk gets one delayed resend.
    Every other failure ends the session. After the last chunk the reported
    size is reconciled with the file size and, on mismatch, finalize
    endpoints are tried in order.
    """

    def __init__(
        self,
        transport: ChunkTransport,
        credentials: CredentialProvider,
        config: Config,
        observer: Optional[UploadObserver] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.transport = transport
        self.credentials = credentials
        self.config = config
        self.observer = observer or UploadObserver()
        self.sleep = sleep
        self.state = SessionState.IDLE
        self.progress = ProgressEvent(0, 0)
        self._record: Optional[_SessionRecord] = None
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def upload_id(self) -> Optional[str]:
        return self._record.upload_id if self._record else None

    def upload(
        self,
        source: UploadSource,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> UploadOutcome:
        """
        Upload a file in chunks.

        Args:
            source: Path to a file, or a seekable binary file object
            filename: Name sent to the server (defaults to the path's basename)
            content_type: MIME type (guessed from the filename when omitted)

        Returns:
            UploadOutcome with state SUCCEEDED or FAILED

        Raises:
            SessionBusyError: If this session already has an upload in flight
            ValidationError: If no file is given, the file is empty or no token is available
        """
        if not self._lock.acquire(blocking=False):
            raise SessionBusyError("An upload is already in progress for this session")
        try:
            if source is None:
                raise ValidationError("No file selected")

            if isinstance(source, (str, os.PathLike)):
                path = Path(source)
                if not path.is_file():
                    raise ValidationError(f"File not found: {path}")
                try:
                    fileobj = open(path, 'rb')
                except OSError as e:
                    raise ValidationError(f"Cannot read file: {e}") from e
                with fileobj:
                    return self._run(fileobj, filename or path.name, content_type)

            name = filename or os.path.basename(str(getattr(source, 'name', '') or ''))
            if not name:
                raise ValidationError("A filename is required when uploading from a stream")
            return self._run(source, name, content_type)
        finally:
            self._record = None
            self.state = SessionState.IDLE
            self._lock.release()

    def reset(self) -> None:
        """Discard session state and progress."""
        if self.busy:
            raise SessionBusyError("Cannot reset while an upload is in progress")
        self._record = None
        self.state = SessionState.IDLE
        self.progress = ProgressEvent(0, 0)

    def _run(self, fileobj: BinaryIO, filename: str, content_type: Optional[str]) -> UploadOutcome:
        token = self.credentials.get_token()
        if not token:
            raise NoCredentialError("No token available for upload. Please log in.")

        content_type = content_type or mimetypes.guess_type(filename)[0] or 'application/octet-stream'
        upload_id = new_upload_id()
        self._transition(upload_id, SessionState.SPLITTING)

        chunker = FileChunker(fileobj, self.config.get_chunk_size())
        policy = self.config.get_retry_policy()
        record = _SessionRecord(
            upload_id=upload_id,
            filename=filename,
            total_size=chunker.file_size,
            chunk_size=chunker.chunk_size,
            total_chunks=len(chunker),
            retry_budget=policy['auth_retry_budget'],
        )
        self._record = record
        file_meta = FileMeta(filename=filename, total_size=record.total_size, content_type=content_type)
        session_meta = SessionMeta(upload_id=upload_id, total_chunks=record.total_chunks)

        logger.info(
            f"Starting upload: {filename} size={record.total_size} content_type={content_type} "
            f"chunks={record.total_chunks} [upload_id={upload_id}]"
        )
        self._emit_progress(record, 0)
        self._transition(upload_id, SessionState.SENDING)

        last_result: Optional[ChunkUploadResult] = None
        try:
            for chunk in chunker:
                record.chunk_cursor = chunk.index
                last_result, token = self._send_with_recovery(chunk, file_meta, session_meta, token, policy)
                self._emit_progress(record, chunk.index + 1)
        except ChunkTransportError as e:
            self._emit_progress(record, record.chunk_cursor + 1)
            return self._fail(
                record,
                f"Upload failed on chunk {record.chunk_cursor + 1}/{record.total_chunks}: {e}",
                e,
            )
        except (OSError, EOFError) as e:
            self._emit_progress(record, record.chunk_cursor + 1)
            return self._fail(record, f"Could not read chunk {record.chunk_cursor + 1}: {e}", e)

        return self._reconcile(record, file_meta, session_meta, last_result, token)

    def _send_with_recovery(
        self,
        chunk: Chunk,
        file_meta: FileMeta,
        session_meta: SessionMeta,
        token: str,
        policy: dict,
    ) -> tuple[ChunkUploadResult, str]:
        record = self._record
        part = f"{chunk.index + 1}/{session_meta.total_chunks}"
        checksum, algorithm = self._checksum(chunk, record)

        try:
            return self._send(chunk, file_meta, session_meta, token, checksum, algorithm), token
        except ChunkTransportError as error:
            logger.warning(
                f"Chunk {part} failed: status={error.status_code} {error} [upload_id={record.upload_id}]"
            )
            is_last = chunk.index + 1 == session_meta.total_chunks

            if error.is_auth_failure:
                new_token = self._renew_credential(record, token)
                if new_token is None:
                    raise
                self._transition(record.upload_id, SessionState.RETRYING)
                logger.info(f"Retrying chunk {part} with renewed token [upload_id={record.upload_id}]")
                result = self._send(chunk, file_meta, session_meta, new_token, checksum, algorithm)
                self._transition(record.upload_id, SessionState.SENDING)
                return result, new_token

            if is_last and error.is_transient and policy['retry_last_chunk_on_server_error']:
                delay = policy['last_chunk_retry_delay']
                self._transition(record.upload_id, SessionState.RETRYING)
                logger.info(f"Retrying last chunk {part} in {delay}s [upload_id={record.upload_id}]")
                self.sleep(delay)
                result = self._send(chunk, file_meta, session_meta, token, checksum, algorithm)
                self._transition(record.upload_id, SessionState.SENDING)
                return result, token

            raise

    def _send(
        self,
        chunk: Chunk,
        file_meta: FileMeta,
        session_meta: SessionMeta,
        token: str,
        checksum: Optional[str],
        algorithm: Optional[str],
    ) -> ChunkUploadResult:
        try:
            return self.transport.send_chunk(
                chunk, file_meta, session_meta, token,
                checksum=checksum, checksum_algorithm=algorithm,
            )
        except ProtocolShapeError as e:
            logger.warning(
                f"Unexpected response for chunk {chunk.index + 1}: {e} body={e.body[:200]!r} "
                f"[upload_id={session_meta.upload_id}]"
            )
            raw = e.payload if e.payload is not None else e.body
            return ChunkUploadResult(files=(), raw=raw, shape_error=True)

    def _checksum(self, chunk: Chunk, record: _SessionRecord) -> tuple[Optional[str], Optional[str]]:
        checksum_config = self.config.get_checksum_config()
        if not checksum_config['enabled']:
            return None, None
        algorithm = checksum_config['algorithm']
        try:
            return compute_chunk_checksum(chunk, algorithm), algorithm
        except ChecksumError as e:
            logger.warning(f"{e}; sending chunk without digest [upload_id={record.upload_id}]")
            return None, None

    def _renew_credential(self, record: _SessionRecord, token: str) -> Optional[str]:
        if record.retry_budget <= 0:
            logger.error(f"Token renewal budget exhausted [upload_id={record.upload_id}]")
            return None
        if not self.credentials.can_renew():
            logger.error(f"Credential provider cannot renew tokens [upload_id={record.upload_id}]")
            return None

        record.retry_budget -= 1
        try:
            new_token = self.credentials.renew(stale_token=token)
        except CredentialRenewalError as e:
            logger.error(f"Token renewal failed: {e} [upload_id={record.upload_id}]")
            return None
        return new_token or None

    def _reconcile(
        self,
        record: _SessionRecord,
        file_meta: FileMeta,
        session_meta: SessionMeta,
        last_result: Optional[ChunkUploadResult],
        token: str,
    ) -> UploadOutcome:
        self._transition(record.upload_id, SessionState.RECONCILING)
        decision = reconcile(last_result, record.total_size)

        if decision.complete:
            return self._succeed(record, last_result, f"File uploaded completely ({record.total_chunks} chunks)")

        logger.info(
            f"Reported size {decision.reported_size} does not match expected {record.total_size}, "
            f"requesting finalize [upload_id={record.upload_id}]"
        )
        finalize_config = self.config.get_finalize_config()
        endpoints = finalize_config['endpoints']
        last_error: Optional[FinalizeError] = None

        for endpoint in endpoints:
            try:
                finalized = self.transport.finalize(endpoint, file_meta, session_meta, token)
            except FinalizeError as e:
                logger.warning(f"{e} [upload_id={record.upload_id}]")
                last_error = e
                continue

            logger.info(f"Finalize accepted at {endpoint} [upload_id={record.upload_id}]")
            artifact = finalized if finalized is not None and finalized.files else last_result
            return self._succeed(
                record,
                artifact,
                f"File uploaded and assembled ({record.total_chunks} chunks)",
                finalize_attempted=True,
                finalized=True,
            )

        if finalize_config['tolerate_failure']:
            logger.warning(
                f"No finalize endpoint accepted the upload, assuming server-side assembly "
                f"[upload_id={record.upload_id}]"
            )
            return self._succeed(
                record,
                last_result,
                f"File uploaded ({record.total_chunks} chunks); assembly not confirmed by server",
                finalize_attempted=bool(endpoints),
            )

        message = f"Finalize failed: {last_error}" if last_error else "Finalize failed: no endpoint configured"
        return self._fail(record, message, last_error, result=last_result, finalize_attempted=bool(endpoints))

    def _succeed(
        self,
        record: _SessionRecord,
        result: Optional[ChunkUploadResult],
        message: str,
        finalize_attempted: bool = False,
        finalized: bool = False,
    ) -> UploadOutcome:
        outcome = UploadOutcome(
            state=SessionState.SUCCEEDED,
            upload_id=record.upload_id,
            filename=record.filename,
            total_size=record.total_size,
            total_chunks=record.total_chunks,
            message=message,
            result=result,
            finalize_attempted=finalize_attempted,
            finalized=finalized,
        )
        logger.info(f"Upload completed: {record.filename} - {message} [upload_id={record.upload_id}]")
        return self._complete(outcome)

    def _fail(
        self,
        record: _SessionRecord,
        message: str,
        error: Optional[Exception],
        result: Optional[ChunkUploadResult] = None,
        finalize_attempted: bool = False,
    ) -> UploadOutcome:
        outcome = UploadOutcome(
            state=SessionState.FAILED,
            upload_id=record.upload_id,
            filename=record.filename,
            total_size=record.total_size,
            total_chunks=record.total_chunks,
            message=message,
            result=result,
            finalize_attempted=finalize_attempted,
            error=error,
        )
        logger.error(f"Upload failed: {record.filename} - {message} [upload_id={record.upload_id}]")
        return self._complete(outcome)

    def _complete(self, outcome: UploadOutcome) -> UploadOutcome:
        self._transition(outcome.upload_id, outcome.state)
        self.observer.on_complete(outcome)
        return outcome

    def _transition(self, upload_id: str, state: SessionState) -> None:
        self.state = state
        logger.debug(f"Session state -> {state.value} [upload_id={upload_id}]")
        self.observer.on_state_change(upload_id, state)

    def _emit_progress(self, record: _SessionRecord, current: int) -> None:
        self.progress = ProgressEvent(current, record.total_chunks)
        self.observer.on_progress(record.upload_id, self.progress)

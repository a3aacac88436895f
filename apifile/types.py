"""Shared data type definitions (Chunk, ChunkUploadResult, UploadOutcome, etc.)."""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, BinaryIO, Iterator, Optional

from apifile.schemas import FileRecord
from common.constants import READ_BLOCK_SIZE


@dataclass(frozen=True)
class Chunk:
    """
    A contiguous byte range of a source file.

    The bytes are not read until read() or iter_blocks() is called.
    """
    index: int
    byte_start: int
    byte_end: int
    source: BinaryIO = field(repr=False, compare=False)

    @property
    def size(self) -> int:
        return self.byte_end - self.byte_start

    def iter_blocks(self, block_size: int = READ_BLOCK_SIZE) -> Iterator[bytes]:
        """Yield the chunk's bytes in blocks of at most block_size."""
        self.source.seek(self.byte_start, os.SEEK_SET)
        remaining = self.size
        while remaining > 0:
            block = self.source.read(min(block_size, remaining))
            if not block:
                raise EOFError(
                    f"Source ended at byte {self.byte_end - remaining}, expected {self.byte_end}"
                )
            remaining -= len(block)
            yield block

    def read(self) -> bytes:
        """Materialize the chunk's bytes for transmission."""
        return b''.join(self.iter_blocks())


@dataclass(frozen=True)
class FileMeta:
    """
    Metadata of the file being uploaded.
    """
    filename: str
    total_size: int
    content_type: str = 'application/octet-stream'


@dataclass(frozen=True)
class SessionMeta:
    """
    Identity of one upload, shared by all of its chunk requests.
    """
    upload_id: str
    total_chunks: int


@dataclass(frozen=True)
class ChunkUploadResult:
    """
    Server's parsed response to one chunk (or finalize) request.
    """
    files: tuple[FileRecord, ...] = ()
    raw: Any = None
    shape_error: bool = False

    @property
    def primary(self) -> Optional[FileRecord]:
        return self.files[0] if self.files else None

    @property
    def reported_size(self) -> Optional[int]:
        record = self.primary
        return record.size if record is not None else None


@dataclass(frozen=True)
class ProgressEvent:
    """Progress of an upload measured in chunks."""
    current: int
    total: int

    @property
    def fraction(self) -> float:
        return self.current / self.total if self.total else 0.0


class SessionState(str, Enum):
    IDLE = "idle"
    SPLITTING = "splitting"
    SENDING = "sending"
    RETRYING = "retrying"
    RECONCILING = "reconciling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class UploadOutcome:
    """
    Terminal status record of one upload session.
    """
    state: SessionState
    upload_id: str
    filename: str
    total_size: int
    total_chunks: int
    message: str
    result: Optional[ChunkUploadResult] = None
    finalize_attempted: bool = False
    finalized: bool = False
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.state is SessionState.SUCCEEDED

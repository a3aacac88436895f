"""Splits a seekable binary file into fixed-size chunks."""

import os
from typing import BinaryIO, Iterator

from apifile.types import Chunk
from common.exceptions import EmptyFileError, ValidationError


def measure_size(fileobj: BinaryIO) -> int:
    """
    Measure the size of a seekable file object without reading it.

    The current position is restored afterwards.
    """
    position = fileobj.tell()
    try:
        return fileobj.seek(0, os.SEEK_END)
    finally:
        fileobj.seek(position, os.SEEK_SET)


class FileChunker:
    """
    Lazy, restartable sequence of chunks covering a file.

    Usage:
        chunker = FileChunker(f, 10 * 1024 * 1024)
        total = len(chunker)
        for chunk in chunker:
            payload = chunk.read()
    """

    def __init__(self, fileobj: BinaryIO, chunk_size: int):
        """
        Initialize chunker.

        Args:
            fileobj: Seekable binary file object
            chunk_size: Bytes per chunk (last chunk may be shorter)

        Raises:
            ValidationError: If chunk_size is not a positive integer or the source is not seekable
            EmptyFileError: If the file has zero bytes
        """
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
            raise ValidationError(f"Chunk size must be a positive integer, got {chunk_size!r}")
        if not getattr(fileobj, 'seekable', lambda: False)():
            raise ValidationError("File source must be seekable")

        self.fileobj = fileobj
        self.chunk_size = chunk_size
        self.file_size = measure_size(fileobj)

        if self.file_size == 0:
            raise EmptyFileError("File is empty")

    def __len__(self) -> int:
        return -(-self.file_size // self.chunk_size)

    def __iter__(self) -> Iterator[Chunk]:
        start = 0
        index = 0
        while start < self.file_size:
            end = min(start + self.chunk_size, self.file_size)
            yield Chunk(index=index, byte_start=start, byte_end=end, source=self.fileobj)
            start = end
            index += 1

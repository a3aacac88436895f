"""Tests for FileChunker."""

import io

import pytest

from apifile.chunker import FileChunker, measure_size
from common.exceptions import EmptyFileError, ValidationError
from conftest import MiB


@pytest.mark.parametrize(
    "file_size,chunk_size",
    [
        (1, 1),
        (1, 10),
        (10, 10),
        (11, 10),
        (99, 10),
        (100, 10),
        (1000, 7),
        (4096, 1024),
    ],
)
def test_chunks_partition_file(file_size, chunk_size):
    """Chunks cover [0, size) with no gaps or overlaps; only the last is short."""
    chunker = FileChunker(io.BytesIO(b'x' * file_size), chunk_size)
    chunks = list(chunker)

    expected_count = -(-file_size // chunk_size)
    assert len(chunker) == expected_count
    assert len(chunks) == expected_count
    assert [c.index for c in chunks] == list(range(expected_count))

    position = 0
    for chunk in chunks:
        assert chunk.byte_start == position
        assert chunk.size > 0
        position = chunk.byte_end
    assert position == file_size

    for chunk in chunks[:-1]:
        assert chunk.size == chunk_size
    last_size = file_size % chunk_size or chunk_size
    assert chunks[-1].size == last_size


def test_rechunking_is_idempotent():
    """Iterating twice yields identical boundaries."""
    chunker = FileChunker(io.BytesIO(b'a' * 1234), 100)

    first = [(c.index, c.byte_start, c.byte_end) for c in chunker]
    second = [(c.index, c.byte_start, c.byte_end) for c in chunker]

    assert first == second
    assert first == [(c.index, c.byte_start, c.byte_end) for c in FileChunker(io.BytesIO(b'a' * 1234), 100)]


def test_chunk_read_returns_its_byte_range():
    """Each chunk reads exactly its slice of the source."""
    data = bytes(range(256)) * 4
    chunks = list(FileChunker(io.BytesIO(data), 300))

    assert b''.join(c.read() for c in chunks) == data
    assert chunks[1].read() == data[300:600]
    assert chunks[0].read() == data[:300]


def test_chunks_are_lazy_views(make_file):
    """Creating chunks does not read the file."""
    path = make_file(5000)
    with open(path, 'rb') as f:
        chunker = FileChunker(f, 1000)
        chunks = list(chunker)
        assert f.tell() == 0
        assert chunks[3].read() == path.read_bytes()[3000:4000]


def test_25_mib_file_with_10_mib_chunks(tmp_path):
    """A 25 MiB file splits into 10, 10 and 5 MiB chunks."""
    path = tmp_path / 'big.bin'
    with open(path, 'wb') as f:
        f.truncate(25 * MiB)

    with open(path, 'rb') as f:
        chunks = list(FileChunker(f, 10 * MiB))

    assert [c.size for c in chunks] == [10 * MiB, 10 * MiB, 5 * MiB]


def test_empty_file_rejected():
    """A zero-length file raises EmptyFileError instead of producing no chunks."""
    with pytest.raises(EmptyFileError):
        FileChunker(io.BytesIO(b''), 10)


def test_empty_file_is_validation_error():
    with pytest.raises(ValidationError):
        FileChunker(io.BytesIO(b''), 10)


@pytest.mark.parametrize("chunk_size", [0, -1, 1.5, True, None])
def test_invalid_chunk_size_rejected(chunk_size):
    with pytest.raises(ValidationError):
        FileChunker(io.BytesIO(b'data'), chunk_size)


def test_non_seekable_source_rejected():
    class Unseekable(io.RawIOBase):
        def seekable(self):
            return False

    with pytest.raises(ValidationError):
        FileChunker(Unseekable(), 10)


def test_measure_size_restores_position():
    source = io.BytesIO(b'0123456789')
    source.seek(4)

    assert measure_size(source) == 10
    assert source.tell() == 4


def test_truncated_source_raises_on_read():
    """A source that shrinks after chunking fails on read rather than sending short data."""
    source = io.BytesIO(b'x' * 100)
    chunks = list(FileChunker(source, 60))
    source.truncate(70)

    with pytest.raises(EOFError):
        chunks[1].read()

"""Provides per-chunk content digests for server-side integrity checks."""

import hashlib

from apifile.types import Chunk
from common.exceptions import ChecksumError


def compute_chunk_checksum(chunk: Chunk, algorithm: str = "sha256") -> str:
    """
    Compute a checksum over exactly the chunk's bytes, streaming from its source.

    Args:
        chunk: Chunk to digest
        algorithm: Any hashlib algorithm name

    Returns:
        Hexadecimal digest string

    Raises:
        ChecksumError: If the source cannot be read or the algorithm is unknown
    """
    calculator = IncrementalChecksumCalculator(algorithm)
    try:
        for block in chunk.iter_blocks():
            calculator.update(block)
    except (OSError, EOFError, ValueError) as e:
        raise ChecksumError(f"Could not read chunk {chunk.index} for hashing: {e}") from e
    return calculator.finalize()


class IncrementalChecksumCalculator:
    """
    Calculate a checksum incrementally for streaming data.

    Usage:
        calculator = IncrementalChecksumCalculator("sha256")
        calculator.update(block1)
        calculator.update(block2)
        digest = calculator.finalize()
    """

    def __init__(self, algorithm: str = "sha256"):
        try:
            self._hasher = hashlib.new(algorithm)
        except ValueError as e:
            raise ChecksumError(f"Unsupported checksum algorithm: {algorithm}") from e
        self.algorithm = algorithm
        self._finalized = False

    def update(self, data: bytes) -> None:
        if self._finalized:
            raise ValueError("Cannot update after finalization")
        self._hasher.update(data)

    def finalize(self) -> str:
        self._finalized = True
        return self._hasher.hexdigest()

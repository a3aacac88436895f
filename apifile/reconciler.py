"""Decides whether an uploaded object is complete after the last chunk."""

from dataclasses import dataclass
from typing import Optional

from apifile.types import ChunkUploadResult


@dataclass(frozen=True)
class ReconcileDecision:
    complete: bool
    needs_finalize: bool
    reported_size: Optional[int] = None


def reconcile(last_result: Optional[ChunkUploadResult], total_size: int) -> ReconcileDecision:
    """
    Compare the size reported for the last chunk with the expected file size.

    A missing result or a result without a reported size cannot prove the
    server assembled the object, so it asks for finalization.

    Args:
        last_result: Parsed response of the final chunk
        total_size: Expected size of the whole file in bytes

    Returns:
        ReconcileDecision with complete and needs_finalize set
    """
    reported = last_result.reported_size if last_result is not None else None
    complete = reported is not None and reported == total_size
    return ReconcileDecision(complete=complete, needs_finalize=not complete, reported_size=reported)

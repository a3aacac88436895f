"""Tests for the reconcile decision function."""

from apifile.reconciler import reconcile
from apifile.schemas import FileRecord
from apifile.types import ChunkUploadResult


def _result(size):
    return ChunkUploadResult(files=(FileRecord(file_id='abc', size=size, content_type='text/plain'),))


def test_matching_size_is_complete():
    decision = reconcile(_result(300), 300)

    assert decision.complete
    assert not decision.needs_finalize
    assert decision.reported_size == 300


def test_mismatched_size_needs_finalize():
    decision = reconcile(_result(100), 300)

    assert not decision.complete
    assert decision.needs_finalize
    assert decision.reported_size == 100


def test_missing_size_needs_finalize():
    decision = reconcile(_result(None), 300)

    assert decision.needs_finalize
    assert decision.reported_size is None


def test_empty_file_list_needs_finalize():
    assert reconcile(ChunkUploadResult(files=(), shape_error=True), 300).needs_finalize


def test_no_result_needs_finalize():
    assert reconcile(None, 300).needs_finalize


def test_first_record_is_used():
    result = ChunkUploadResult(files=(
        FileRecord(file_id='a', size=300),
        FileRecord(file_id='b', size=1),
    ))
    assert reconcile(result, 300).complete

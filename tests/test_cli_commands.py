"""Tests for CLI command handlers."""

import json
from pathlib import Path
from unittest.mock import ANY, Mock

import pytest

from apifile.client import ApifileClient
from apifile.files_client import DownloadResult
from apifile.schemas import FileRecord
from apifile.types import ChunkUploadResult, SessionState, UploadOutcome
from cli.commands import (
    build_client,
    handle_download,
    handle_health,
    handle_login,
    handle_logout,
    handle_search,
    handle_upload,
    handle_whoami,
)
from cli.models import (
    DownloadCommand,
    HealthCommand,
    LoginCommand,
    LogoutCommand,
    SearchCommand,
    UploadCommand,
    WhoamiCommand,
)
from cli.utils import ConsoleUploadObserver
from common.exceptions import ApiConnectionError, ApiError, AuthenticationError, EmptyFileError


@pytest.fixture
def mock_client():
    return Mock(spec=ApifileClient)


def _outcome(state=SessionState.SUCCEEDED, message='File uploaded completely (2 chunks)', **kwargs):
    record = FileRecord(file_id='abc123', name='test.txt', size=2048, content_type='text/plain')
    defaults = dict(
        state=state,
        upload_id='u1',
        filename='test.txt',
        total_size=2048,
        total_chunks=2,
        message=message,
        result=ChunkUploadResult(files=(record,)),
    )
    defaults.update(kwargs)
    return UploadOutcome(**defaults)


def test_build_client(tmp_path):
    client = build_client(tmp_path / '.apifile' / 'config.json')

    assert isinstance(client, ApifileClient)
    assert client.config.config_path == tmp_path / '.apifile' / 'config.json'
    client.close()


def test_handle_login(mock_client):
    """Test login command handler with mocked client."""
    cmd = LoginCommand(username='testuser', password='password123')
    result = handle_login(cmd, client=mock_client)

    assert 'Login successful' in result
    mock_client.login.assert_called_once_with('testuser', 'password123')


def test_handle_login_failure(mock_client):
    mock_client.login.side_effect = AuthenticationError("Identity provider returned HTTP 401: Invalid user credentials")

    result = handle_login(LoginCommand(username='u', password='bad'), client=mock_client)

    assert result.startswith('Login failed')
    assert 'Invalid user credentials' in result


def test_handle_logout(mock_client):
    assert handle_logout(LogoutCommand(), client=mock_client) == 'Logged out.'
    mock_client.logout.assert_called_once_with()


def test_handle_whoami(mock_client):
    mock_client.user_info.return_value = {
        'name': 'Alice Doe',
        'email': 'alice@example.com',
        'rut': '12345678-9',
        'email_verified': True,
        'preferred_username': 'alice',
        'roles': ['uploader'],
    }

    result = handle_whoami(WhoamiCommand(), client=mock_client)

    assert 'Name: Alice Doe' in result
    assert 'alice@example.com (verified)' in result
    assert 'RUT: 12345678-9' in result
    assert 'Roles: uploader' in result


def test_handle_whoami_not_logged_in(mock_client):
    mock_client.user_info.return_value = None

    assert 'Not logged in' in handle_whoami(WhoamiCommand(), client=mock_client)


def test_handle_upload(mock_client):
    """Test upload command handler reports each file."""
    mock_client.upload_file.return_value = _outcome()

    cmd = UploadCommand(file_list=('test.txt', 'other.txt'))
    result = handle_upload(cmd, client=mock_client)

    assert result.count('Uploaded: test.txt (2.00 KiB, 2 chunks)') == 2
    assert 'ID: abc123' in result
    assert 'Note' not in result
    assert mock_client.upload_file.call_count == 2
    mock_client.upload_file.assert_any_call(Path('test.txt'), observer=ANY)
    observer = mock_client.upload_file.call_args.kwargs['observer']
    assert isinstance(observer, ConsoleUploadObserver)


def test_handle_upload_unconfirmed_assembly(mock_client):
    mock_client.upload_file.return_value = _outcome(finalize_attempted=True, finalized=False)

    result = handle_upload(UploadCommand(file_list=('test.txt',)), client=mock_client)

    assert 'assembly not confirmed' in result


def test_handle_upload_failed_outcome(mock_client):
    mock_client.upload_file.return_value = _outcome(
        state=SessionState.FAILED, message='Upload failed on chunk 2/2: HTTP 500 on part 2', result=None
    )

    result = handle_upload(UploadCommand(file_list=('test.txt',)), client=mock_client)

    assert result == 'Error uploading test.txt: Upload failed on chunk 2/2: HTTP 500 on part 2'


def test_handle_upload_rejected_file_continues(mock_client):
    mock_client.upload_file.side_effect = [EmptyFileError("File is empty: empty.txt"), _outcome()]

    result = handle_upload(UploadCommand(file_list=('empty.txt', 'test.txt')), client=mock_client)

    lines = result.splitlines()
    assert lines[0] == 'Error uploading empty.txt: File is empty: empty.txt'
    assert lines[1].startswith('Uploaded: test.txt')


def test_handle_upload_unreadable_file_reported(tmp_path, monkeypatch):
    """A file that cannot be opened is reported and the remaining files still upload."""
    from apifile.credentials import StaticCredentialProvider

    locked = tmp_path / 'locked.txt'
    locked.write_bytes(b'secret')
    real_open = open

    def denying_open(file, *args, **kwargs):
        if str(file) == str(locked):
            raise PermissionError(13, 'Permission denied', str(file))
        return real_open(file, *args, **kwargs)

    monkeypatch.setattr('builtins.open', denying_open)
    client = build_client(tmp_path / '.apifile' / 'config.json')
    client.credentials = StaticCredentialProvider('token')
    try:
        result = handle_upload(UploadCommand(file_list=(str(locked),)), client=client)
    finally:
        client.close()

    assert result.startswith(f'Error uploading {locked}: Cannot read file:')
    assert 'Permission denied' in result


def test_handle_search(mock_client):
    mock_client.search.return_value = [
        FileRecord(file_id='a1', name='informe.pdf', size=2048, content_type='application/pdf',
                   created_at='2024-05-01', backup_status='ok', backup_timestamp='2024-05-02'),
        FileRecord(file_id='b2', name='foto.png', readable_size='10 B'),
    ]

    result = handle_search(SearchCommand(query='informe'), client=mock_client)

    assert result.startswith('Found 2 file(s):')
    assert 'informe.pdf (ID: a1)' in result
    assert 'Size: 2048 bytes' in result
    assert 'Backup: ok (2024-05-02)' in result
    assert 'Size: 10 B' in result
    mock_client.search.assert_called_once_with('informe')


def test_handle_search_no_results(mock_client):
    mock_client.search.return_value = []

    assert handle_search(SearchCommand(query='nada'), client=mock_client) == 'No results for query: nada'


def test_handle_search_api_error(mock_client):
    mock_client.search.side_effect = ApiError("GET /search returned HTTP 401", 401, json.dumps({'detail': 'expired'}))

    result = handle_search(SearchCommand(query='x'), client=mock_client)

    assert result == 'Error: Not authenticated. Please run: login <username> <password> (expired)'


def test_handle_download(mock_client, tmp_path):
    mock_client.download.return_value = DownloadResult(path=tmp_path / 'a.pdf', filename='a.pdf', size=100)

    result = handle_download(DownloadCommand(file_id='a1', output_dir=str(tmp_path)), client=mock_client)

    assert 'Downloaded: a.pdf (100 B)' in result
    assert str(tmp_path / 'a.pdf') in result
    mock_client.download.assert_called_once_with('a1', output_dir=tmp_path, on_progress=ANY)


def test_handle_download_default_dir(mock_client, tmp_path):
    mock_client.download.return_value = DownloadResult(path=tmp_path / 'a.pdf', filename='a.pdf', size=1)

    handle_download(DownloadCommand(file_id='a1'), client=mock_client)

    mock_client.download.assert_called_once_with('a1', output_dir=None, on_progress=ANY)


def test_handle_download_not_found(mock_client):
    mock_client.download.side_effect = ApiError("GET /obtenerfile/x returned HTTP 404", 404, '')

    assert handle_download(DownloadCommand(file_id='x'), client=mock_client) == 'Error: Not found'


def test_handle_download_connection_error(mock_client):
    mock_client.download.side_effect = ApiConnectionError("Cannot connect to the file API. Is it running?")

    assert 'Cannot connect' in handle_download(DownloadCommand(file_id='x'), client=mock_client)


def test_handle_health(mock_client):
    mock_client.health.return_value = {'status': 'ok', 'version': '1.2'}

    assert handle_health(HealthCommand(), client=mock_client) == 'API health: status=ok, version=1.2'


def test_dispatch_routes_every_command(mock_client):
    from cli.repl import HANDLERS, dispatch_command

    mock_client.health.return_value = {'status': 'ok'}

    assert dispatch_command(HealthCommand(), mock_client) == 'API health: status=ok'
    assert set(HANDLERS) == {
        LoginCommand, LogoutCommand, WhoamiCommand, UploadCommand,
        SearchCommand, DownloadCommand, HealthCommand,
    }
    assert dispatch_command(object(), mock_client).startswith('Unknown command type')

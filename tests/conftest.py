"""Shared pytest fixtures for all tests."""

import re
from email import policy
from email.parser import BytesParser

import httpx
import pytest

from apifile.config import Config
from apifile.credentials import CredentialProvider
from apifile.events import UploadObserver

MiB = 1024 * 1024


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Returns:
        Path to temporary .apifile directory
    """
    config_dir = tmp_path / '.apifile'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance pointed at a fake API.

    Returns:
        Config instance with temp config file
    """
    config = Config(temp_config_dir / 'config.json')
    config.data['api_base_url'] = 'http://test'
    config.data['upload_path'] = '/api/upload'
    config.data['keycloak_url'] = 'http://sso.test'
    config.data['keycloak_realm'] = 'files'
    config.data['keycloak_client_id'] = 'api-front-client'
    config.data['last_chunk_retry_delay'] = 0
    return config


@pytest.fixture
def make_file(tmp_path):
    """
    Factory creating a file with deterministic content of the requested size.

    Returns:
        Callable (size, name) -> Path
    """
    def _make(size: int, name: str = 'data.bin'):
        path = tmp_path / name
        pattern = bytes(range(256))
        with open(path, 'wb') as f:
            remaining = size
            while remaining > 0:
                block = pattern[:min(len(pattern), remaining)]
                f.write(block)
                remaining -= len(block)
        return path

    return _make


class StubCredentials(CredentialProvider):
    """Credential provider double that hands out numbered tokens."""

    def __init__(self, token='token-1', renewals=('token-2',), fail_renewal=False):
        self.token = token
        self._renewals = list(renewals)
        self.fail_renewal = fail_renewal
        self.renew_calls = []

    def get_token(self):
        return self.token

    def can_renew(self):
        return True

    def renew(self, stale_token=None):
        from common.exceptions import CredentialRenewalError
        self.renew_calls.append(stale_token)
        if self.fail_renewal or not self._renewals:
            raise CredentialRenewalError("refresh token expired")
        self.token = self._renewals.pop(0)
        return self.token


class RecordingObserver(UploadObserver):
    """Observer that records every notification."""

    def __init__(self):
        self.states = []
        self.progress = []
        self.outcomes = []

    def on_state_change(self, upload_id, state):
        self.states.append(state)

    def on_progress(self, upload_id, event):
        self.progress.append((event.current, event.total))

    def on_complete(self, outcome):
        self.outcomes.append(outcome)


@pytest.fixture
def credentials():
    return StubCredentials()


@pytest.fixture
def observer():
    return RecordingObserver()


def parse_multipart(request: httpx.Request):
    """
    Split a multipart/form-data request into plain fields and file parts.

    Returns:
        Tuple of (fields dict, files dict of name -> (filename, bytes, content_type))
    """
    content_type = request.headers['Content-Type']
    message = BytesParser(policy=policy.HTTP).parsebytes(
        b'Content-Type: ' + content_type.encode() + b'\r\n\r\n' + request.content
    )
    fields = {}
    files = {}
    for part in message.iter_parts():
        name = part.get_param('name', header='content-disposition')
        filename = part.get_filename()
        payload = part.get_payload(decode=True)
        if filename is not None:
            files[name] = (filename, payload, part.get_content_type())
        else:
            fields[name] = payload.decode()
    return fields, files


def form_field(request: httpx.Request, name: str):
    """Read one plain multipart field without parsing the whole body."""
    match = re.search(
        rb'name="' + re.escape(name.encode()) + rb'"\r\n\r\n([^\r]*)\r\n', request.content
    )
    return match.group(1).decode() if match else None


def upload_response(size=None, name='data.bin', uuid='file-uuid-1', content_type='application/octet-stream'):
    """Build a JSON upload response in the server's format."""
    record = {'nombre': name, 'uuid': uuid, 'tipo_contenido': content_type}
    if size is not None:
        record['tamaño'] = size
    return httpx.Response(200, json={'archivos': [record]})

"""Configuration management for the apifile client."""

import json
import os
import shutil
from pathlib import Path
from typing import Optional

from common.constants import CHUNK_SIZE_BYTES, DEFAULT_FINALIZE_ENDPOINTS, DEFAULT_UPLOAD_PATH
from common.logging_config import get_logger

logger = get_logger(__name__)


def _keycloak_env(name: str, default: str) -> str:
    env = os.environ.get("APIFILE_ENV", "DEV").upper()
    return os.environ.get(f"KEYCLOAK_{name}_{env}", default)


class Config:
    """Manages client configuration stored in a JSON file."""

    DEFAULT_CONFIG = {
        "api_base_url": os.environ.get("APIFILE_BASE_URL", "http://localhost:8000"),
        "upload_path": os.environ.get("APIFILE_UPLOAD_PATH", DEFAULT_UPLOAD_PATH),
        "timeout": 30,
        "chunk_size_bytes": CHUNK_SIZE_BYTES,
        "chunk_timeout_base": 30.0,
        "chunk_timeout_per_mb": 1.0,
        "auth_retry_budget": 1,
        "retry_last_chunk_on_server_error": True,
        "last_chunk_retry_delay": 2.0,
        "compute_checksums": True,
        "checksum_algorithm": "sha256",
        "finalize_endpoints": list(DEFAULT_FINALIZE_ENDPOINTS),
        "tolerate_finalize_failure": True,
        "download_dir": "downloads",
        "keycloak_url": _keycloak_env("URL", "http://localhost:8080"),
        "keycloak_realm": _keycloak_env("REALM", "master"),
        "keycloak_client_id": _keycloak_env("CLIENT_ID", "api-front-client"),
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.apifile/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _defaults(self) -> dict:
        config = self.DEFAULT_CONFIG.copy()
        config["finalize_endpoints"] = list(self.DEFAULT_CONFIG["finalize_endpoints"])
        return config

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            import tempfile
            self.config_path = Path(tempfile.gettempdir()) / '.apifile' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self._defaults()
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError) as e:
                backup_path = self.config_path.with_suffix('.json.bak')
                logger.warning(f"Config file unreadable ({e}), backing up to {backup_path}")
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError as copy_error:
                    logger.warning(f"Could not back up config file: {copy_error}")
                return self._defaults()
        else:
            config = self._defaults()
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(config, f, indent=2)
            except IOError as e:
                logger.warning(f"Could not write default config to {self.config_path}: {e}")
            return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not save config to {self.config_path}: {e}")

    def get_access_token(self) -> Optional[str]:
        """
        Get stored bearer access token.

        Returns:
            Access token string or None if not logged in
        """
        return self.data.get('access_token')

    def get_refresh_token(self) -> Optional[str]:
        return self.data.get('refresh_token')

    def set_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        """
        Store tokens and save to file.

        Args:
            access_token: Bearer access token
            refresh_token: Refresh token; kept unchanged when None
        """
        self.data['access_token'] = access_token
        if refresh_token is not None:
            self.data['refresh_token'] = refresh_token
        self.save()

    def clear_tokens(self) -> None:
        """Forget stored tokens and save to file."""
        self.data.pop('access_token', None)
        self.data.pop('refresh_token', None)
        self.save()

    def get_base_url(self) -> str:
        """
        Get API base URL without a trailing slash.

        Returns:
            Base URL string (e.g., "http://localhost:8000")
        """
        return self.data.get('api_base_url', 'http://localhost:8000').rstrip('/')

    def get_upload_endpoint(self) -> str:
        """
        Get the absolute chunk upload URL.

        Returns:
            Base URL joined with the upload path
        """
        path = self.data.get('upload_path', DEFAULT_UPLOAD_PATH).lstrip('/')
        return f"{self.get_base_url()}/{path}"

    def get_timeout(self) -> float:
        """
        Get default request timeout in seconds.

        Returns:
            Timeout value in seconds
        """
        return self.data.get('timeout', 30)

    def get_chunk_size(self) -> int:
        return self.data.get('chunk_size_bytes', CHUNK_SIZE_BYTES)

    def get_chunk_timeout(self, chunk_size: int) -> float:
        """
        Calculate timeout for one chunk request based on its size.

        Args:
            chunk_size: Chunk size in bytes

        Returns:
            Timeout in seconds (base + per-MiB allowance)
        """
        base_timeout = float(self.data.get('chunk_timeout_base', 30.0))
        per_mb = float(self.data.get('chunk_timeout_per_mb', 1.0))
        size_mb = chunk_size / (1024 * 1024)
        return base_timeout + size_mb * per_mb

    def get_retry_policy(self) -> dict:
        """
        Get chunk retry policy.

        Returns:
            Dictionary with 'auth_retry_budget', 'retry_last_chunk_on_server_error'
            and 'last_chunk_retry_delay'
        """
        return {
            'auth_retry_budget': int(self.data.get('auth_retry_budget', 1)),
            'retry_last_chunk_on_server_error': bool(self.data.get('retry_last_chunk_on_server_error', True)),
            'last_chunk_retry_delay': float(self.data.get('last_chunk_retry_delay', 2.0)),
        }

    def get_checksum_config(self) -> dict:
        return {
            'enabled': bool(self.data.get('compute_checksums', True)),
            'algorithm': self.data.get('checksum_algorithm', 'sha256'),
        }

    def get_finalize_config(self) -> dict:
        """
        Get finalize policy.

        Returns:
            Dictionary with ordered 'endpoints' and 'tolerate_failure'
        """
        return {
            'endpoints': list(self.data.get('finalize_endpoints', DEFAULT_FINALIZE_ENDPOINTS)),
            'tolerate_failure': bool(self.data.get('tolerate_finalize_failure', True)),
        }

    def get_download_dir(self) -> Path:
        return Path(self.data.get('download_dir', 'downloads'))

    def get_token_endpoint(self) -> str:
        """
        Get the Keycloak OpenID Connect token endpoint.

        Returns:
            Token endpoint URL for the configured realm
        """
        base = self.data.get('keycloak_url', 'http://localhost:8080').rstrip('/')
        if not base.endswith('/auth'):
            base = f"{base}/auth"
        realm = self.data.get('keycloak_realm', 'master')
        return f"{base}/realms/{realm}/protocol/openid-connect/token"

    def get_client_id(self) -> str:
        return self.data.get('keycloak_client_id', 'api-front-client')

"""Bearer credential providers: a static token and a Keycloak OpenID Connect client."""

import threading
from typing import Optional

import httpx
import jwt

from apifile.config import Config
from apifile.schemas import TokenResponse
from common.exceptions import ApifileError, AuthenticationError, CredentialRenewalError
from common.logging_config import get_logger

logger = get_logger(__name__)

NOT_AVAILABLE = "Not available"


class CredentialProvider:
    """
    Supplies bearer tokens to transports and renews them on demand.

    Implementations must make renew() safe to call from several sessions at once.
    """

    def get_token(self) -> Optional[str]:
        raise NotImplementedError

    def can_renew(self) -> bool:
        return False

    def renew(self, stale_token: Optional[str] = None) -> str:
        """
        Obtain a fresh token.

        Args:
            stale_token: The token the caller saw rejected, if any

        Returns:
            New bearer token

        Raises:
            CredentialRenewalError: If no fresh token can be obtained
        """
        raise CredentialRenewalError(f"{type(self).__name__} cannot renew tokens")


class StaticCredentialProvider(CredentialProvider):
    """Fixed token supplied by the caller; never renews."""

    def __init__(self, token: Optional[str]):
        self._token = token

    def get_token(self) -> Optional[str]:
        return self._token


class OIDCCredentialProvider(CredentialProvider):
    """
    Keycloak client using the password and refresh-token grants.

    Tokens are persisted through Config so that the CLI survives restarts.
    """

    def __init__(self, config: Config, http_client: Optional[httpx.Client] = None):
        """
        Initialize provider.

        Args:
            config: Configuration instance holding realm settings and tokens
            http_client: Optional preconfigured httpx client (used for testing)
        """
        self.config = config
        self.http = http_client or httpx.Client(timeout=config.get_timeout())
        self._lock = threading.Lock()

    def get_token(self) -> Optional[str]:
        return self.config.get_access_token()

    def can_renew(self) -> bool:
        return bool(self.config.get_refresh_token())

    def login(self, username: str, password: str) -> str:
        """
        Log in with username and password.

        Args:
            username: Realm username
            password: Realm password

        Returns:
            New access token

        Raises:
            AuthenticationError: If the identity provider rejects the credentials
        """
        logger.info(f"Attempting login for user: {username}")
        with self._lock:
            token = self._request_token(
                {
                    'grant_type': 'password',
                    'username': username,
                    'password': password,
                    'scope': 'openid profile email',
                },
                AuthenticationError,
            )
        logger.info(f"Login successful for user: {username}")
        return token

    def renew(self, stale_token: Optional[str] = None) -> str:
        with self._lock:
            current = self.config.get_access_token()
            if stale_token is not None and current and current != stale_token:
                logger.info("Token already renewed by another session, reusing it")
                return current

            refresh_token = self.config.get_refresh_token()
            if not refresh_token:
                raise CredentialRenewalError("No refresh token available. Please log in again.")

            token = self._request_token(
                {'grant_type': 'refresh_token', 'refresh_token': refresh_token},
                CredentialRenewalError,
            )
        logger.info("Access token renewed")
        return token

    def logout(self) -> None:
        """Forget stored tokens."""
        with self._lock:
            self.config.clear_tokens()
        logger.info("Logged out, tokens cleared")

    def user_info(self) -> Optional[dict]:
        """
        Extract user details from the current access token's claims.

        The signature is not verified; the claims are for display only.

        Returns:
            Dictionary of user details, or None when not logged in or the token is unreadable
        """
        token = self.get_token()
        if not token:
            return None
        try:
            claims = jwt.decode(token, options={'verify_signature': False})
        except jwt.PyJWTError as e:
            logger.warning(f"Could not decode access token claims: {e}")
            return None

        rut = NOT_AVAILABLE
        if claims.get('rut_numero') and claims.get('rut_dv'):
            rut = f"{claims['rut_numero']}-{claims['rut_dv']}"

        return {
            'name': claims.get('name') or NOT_AVAILABLE,
            'email': claims.get('email') or NOT_AVAILABLE,
            'rut': rut,
            'email_verified': bool(claims.get('email_verified', False)),
            'preferred_username': claims.get('preferred_username') or NOT_AVAILABLE,
            'roles': list(claims.get('realm_access', {}).get('roles', [])),
        }

    def _request_token(self, form: dict, error_cls: type[ApifileError]) -> str:
        form = {'client_id': self.config.get_client_id(), **form}
        endpoint = self.config.get_token_endpoint()
        try:
            response = self.http.post(endpoint, data=form, headers={'Accept': 'application/json'})
        except httpx.HTTPError as e:
            logger.error(f"Identity provider unreachable: {endpoint} error={type(e).__name__}")
            raise error_cls(f"Identity provider unreachable: {type(e).__name__}") from e

        if not response.is_success:
            detail = _error_description(response)
            logger.warning(f"Token request rejected: status={response.status_code} detail={detail}")
            raise error_cls(f"Identity provider returned HTTP {response.status_code}: {detail}")

        try:
            tokens = TokenResponse.model_validate(response.json())
        except ValueError as e:
            raise error_cls("Malformed token response from identity provider") from e

        self.config.set_tokens(tokens.access_token, tokens.refresh_token)
        return tokens.access_token

    def close(self) -> None:
        self.http.close()


def _error_description(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or 'Unknown error'
    if isinstance(data, dict):
        return data.get('error_description') or data.get('error') or 'Unknown error'
    return 'Unknown error'

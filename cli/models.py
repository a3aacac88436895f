"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class LoginCommand:
    """Login with username and password."""

    username: str
    password: str
    command: Literal["login"] = "login"


@dataclass(frozen=True)
class LogoutCommand:
    """Forget stored tokens."""

    command: Literal["logout"] = "logout"


@dataclass(frozen=True)
class WhoamiCommand:
    """Show user details from the access token."""

    command: Literal["whoami"] = "whoami"


@dataclass(frozen=True)
class UploadCommand:
    """Upload files in chunks."""

    file_list: tuple[str, ...]
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class SearchCommand:
    """Search files by name."""

    query: str
    command: Literal["search"] = "search"


@dataclass(frozen=True)
class DownloadCommand:
    """Download file by id."""

    file_id: str
    output_dir: str | None = None
    command: Literal["download"] = "download"


@dataclass(frozen=True)
class HealthCommand:
    """Check API health."""

    command: Literal["health"] = "health"


CommandRequest = (
    LoginCommand
    | LogoutCommand
    | WhoamiCommand
    | UploadCommand
    | SearchCommand
    | DownloadCommand
    | HealthCommand
)

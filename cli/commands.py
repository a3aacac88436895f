"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from apifile.client import ApifileClient
from apifile.config import Config
from cli.models import (
    DownloadCommand,
    HealthCommand,
    LoginCommand,
    LogoutCommand,
    SearchCommand,
    UploadCommand,
    WhoamiCommand,
)
from cli.utils import ConsoleUploadObserver, DownloadProgressPrinter, format_api_error, format_file_size
from common.exceptions import (
    ApiConnectionError,
    ApiError,
    AuthenticationError,
    NoCredentialError,
    SessionBusyError,
    ValidationError,
)
from common.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / '.apifile' / 'config.json'


def build_client(config_path: Optional[Path] = None) -> ApifileClient:
    """
    Create an ApifileClient from the config file.

    Args:
        config_path: Path to config JSON (defaults to ~/.apifile/config.json)

    Returns:
        ApifileClient instance
    """
    config = Config(config_path or DEFAULT_CONFIG_PATH)
    logger.debug(f"Creating ApifileClient from {config.config_path}")
    return ApifileClient(config)


def handle_login(cmd: LoginCommand, client: ApifileClient) -> str:
    """
    Handle 'login' command.

    Args:
        cmd: LoginCommand with username and password
        client: ApifileClient to use

    Returns:
        Success or error message
    """
    try:
        client.login(cmd.username, cmd.password)
    except AuthenticationError as e:
        return f"Login failed: {e}"
    return "Login successful!\nTokens saved to config."


def handle_logout(cmd: LogoutCommand, client: ApifileClient) -> str:
    client.logout()
    return "Logged out."


def handle_whoami(cmd: WhoamiCommand, client: ApifileClient) -> str:
    """
    Handle 'whoami' command.

    Returns:
        User details or a not-logged-in message
    """
    info = client.user_info()
    if not info:
        return "Not logged in. Please run: login <username> <password>"

    roles = ', '.join(info['roles']) if info['roles'] else '-'
    return (
        f"Name: {info['name']}\n"
        f"Username: {info['preferred_username']}\n"
        f"Email: {info['email']} ({'verified' if info['email_verified'] else 'not verified'})\n"
        f"RUT: {info['rut']}\n"
        f"Roles: {roles}"
    )


def handle_upload(cmd: UploadCommand, client: ApifileClient) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with file_list
        client: ApifileClient to use

    Returns:
        Result message with one line per file
    """
    logger.info(f"Executing upload command: {len(cmd.file_list)} file(s)")
    results = []

    for file_path in cmd.file_list:
        path = Path(file_path).expanduser()
        observer = ConsoleUploadObserver(path.name)
        try:
            outcome = client.upload_file(path, observer=observer)
        except (ValidationError, SessionBusyError) as e:
            results.append(f"Error uploading {file_path}: {e}")
            continue

        if not outcome.succeeded:
            results.append(f"Error uploading {file_path}: {outcome.message}")
            continue

        record = outcome.result.primary if outcome.result else None
        line = f"Uploaded: {outcome.filename} ({format_file_size(outcome.total_size)}, {outcome.total_chunks} chunks)"
        if record is not None:
            line += f"\n  ID: {record.file_id or '-'}  Type: {record.content_type or '-'}"
        if not outcome.finalized and outcome.finalize_attempted:
            line += "\n  Note: assembly not confirmed by server"
        results.append(line)

    return '\n'.join(results) if results else "No files uploaded."


def handle_search(cmd: SearchCommand, client: ApifileClient) -> str:
    """
    Handle 'search' command.

    Returns:
        Formatted list of matching files
    """
    logger.info(f"Executing search command: query={cmd.query!r}")
    try:
        records = client.search(cmd.query)
    except ApiError as e:
        return f"Error: {format_api_error(e)}"
    except (ApiConnectionError, NoCredentialError) as e:
        return f"Error: {e}"

    if not records:
        return f"No results for query: {cmd.query}"

    output = [f"Found {len(records)} file(s):\n"]
    for record in records:
        size = record.readable_size or (f"{record.size} bytes" if record.size is not None else '-')
        backup = record.backup_status or '-'
        if record.backup_timestamp:
            backup += f" ({record.backup_timestamp})"
        output.append(
            f"  - {record.name or '-'} (ID: {record.file_id or '-'})\n"
            f"    Size: {size}\n"
            f"    Type: {record.content_type or '-'}\n"
            f"    Date: {record.created_at or '-'}\n"
            f"    Backup: {backup}"
        )
    return '\n'.join(output)


def handle_download(cmd: DownloadCommand, client: ApifileClient) -> str:
    """
    Handle 'download' command.

    Args:
        cmd: DownloadCommand with file_id and optional output_dir
        client: ApifileClient to use

    Returns:
        Success or error message with download results
    """
    logger.info(f"Executing download command: file_id={cmd.file_id} output_dir={cmd.output_dir}")
    printer = DownloadProgressPrinter(cmd.file_id)
    output_dir = Path(cmd.output_dir) if cmd.output_dir else None
    try:
        result = client.download(cmd.file_id, output_dir=output_dir, on_progress=printer)
    except ApiError as e:
        return f"Error: {format_api_error(e)}"
    except (ApiConnectionError, NoCredentialError) as e:
        return f"Error: {e}"
    except OSError as e:
        return f"Error writing file: {e}"
    finally:
        printer.finish()

    return f"Downloaded: {result.filename} ({format_file_size(result.size)})\nSaved to: {result.path.absolute()}"


def handle_health(cmd: HealthCommand, client: ApifileClient) -> str:
    try:
        data = client.health()
    except ApiError as e:
        return f"Error: {format_api_error(e)}"
    except ApiConnectionError as e:
        return f"Error: {e}"
    return "API health: " + ', '.join(f"{key}={value}" for key, value in data.items())

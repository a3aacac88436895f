"""Command parser for CLI input."""

import shlex

from cli.models import (
    CommandRequest,
    DownloadCommand,
    HealthCommand,
    LoginCommand,
    LogoutCommand,
    SearchCommand,
    UploadCommand,
    WhoamiCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]
    args = tokens[1:]

    if command_name == "login":
        return _parse_login(args)
    elif command_name == "logout":
        _expect_no_args("logout", args)
        return LogoutCommand()
    elif command_name == "whoami":
        _expect_no_args("whoami", args)
        return WhoamiCommand()
    elif command_name == "upload":
        return _parse_upload(args)
    elif command_name == "search":
        return _parse_search(args)
    elif command_name == "download":
        return _parse_download(args)
    elif command_name == "health":
        _expect_no_args("health", args)
        return HealthCommand()
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _expect_no_args(command_name: str, args: list[str]) -> None:
    if args:
        raise ParseError(f"{command_name} takes no arguments")


def _parse_login(args: list[str]) -> LoginCommand:
    """Parse 'login <username> <password>' command."""
    if len(args) != 2:
        raise ParseError("login requires exactly 2 arguments: <username> <password>")

    username, password = args
    return LoginCommand(username=username, password=password)


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload <path> [<path> ...]' command."""
    if not args:
        raise ParseError("upload requires at least one file")

    return UploadCommand(file_list=tuple(args))


def _parse_search(args: list[str]) -> SearchCommand:
    """Parse 'search <query>' command; remaining words form the query."""
    if not args:
        raise ParseError("search requires a query")

    return SearchCommand(query=" ".join(args))


def _parse_download(args: list[str]) -> DownloadCommand:
    """Parse 'download <file_id> [output_dir]' command."""
    if len(args) < 1 or len(args) > 2:
        raise ParseError("download requires 1 or 2 arguments: <file_id> [output_dir]")

    file_id = args[0]
    output_dir = args[1] if len(args) > 1 else None

    return DownloadCommand(file_id=file_id, output_dir=output_dir)

"""REPL with prompt_toolkit for user interaction."""

import os
import sys
from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

from apifile.client import ApifileClient
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
from cli.completer import ApifileCompleter
from cli.constants import (
    HELP_TEXT,
    LOGO,
    PROMPT_TEXT,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
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
from cli.parser import ParseError, parse_command
from common.exceptions import ApifileError
from common.logging_config import get_logger

logger = get_logger(__name__)

HANDLERS = {
    LoginCommand: handle_login,
    LogoutCommand: handle_logout,
    WhoamiCommand: handle_whoami,
    UploadCommand: handle_upload,
    SearchCommand: handle_search,
    DownloadCommand: handle_download,
    HealthCommand: handle_health,
}


def clear_screen() -> None:
    """Clear the terminal screen (cross-platform)."""
    if sys.platform == "win32":
        os.system("cls")
    else:
        os.system("clear")


def show_welcome() -> None:
    print(LOGO)
    print(WELCOME_TITLE)
    print(WELCOME_HELP)


def dispatch_command(cmd_obj, client: ApifileClient) -> str:
    """Dispatch parsed command to appropriate handler."""
    handler = HANDLERS.get(type(cmd_obj))
    if handler is None:
        return f"Unknown command type: {type(cmd_obj)}"
    return handler(cmd_obj, client)


def repl_loop(client: ApifileClient | None = None) -> None:
    """Start interactive REPL with prompt_toolkit."""
    client = client or build_client()
    session: PromptSession = PromptSession(
        completer=ApifileCompleter(), history=InMemoryHistory(), style=STYLE
    )

    clear_screen()
    show_welcome()

    try:
        while True:
            try:
                user_input = session.prompt([("class:prompt", PROMPT_TEXT)])

                if not user_input.strip():
                    continue

                if user_input.strip() == "exit":
                    print("Goodbye!")
                    break

                if user_input.strip() == "help":
                    print(HELP_TEXT)
                    continue

                if user_input.strip() == "clear":
                    clear_screen()
                    show_welcome()
                    continue

                cmd_obj = parse_command(user_input)
                print(dispatch_command(cmd_obj, client))

            except ParseError as e:
                print(f"Error: {e}")
            except ApifileError as e:
                logger.error(f"Command failed: {e}", exc_info=True)
                print(f"Error: {e}")
            except KeyboardInterrupt:
                continue
            except EOFError:
                print("\nGoodbye!")
                break
    finally:
        client.close()

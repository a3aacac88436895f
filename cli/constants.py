"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["login", "logout", "whoami", "upload", "search", "download", "health", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#1F8ACB bold",
        "command": "#0088ff bold",
    }
)

BLUE = "\033[38;2;31;138;203m"
GREEN = "\033[32m"
RED = "\033[31m"
RESET = "\033[0m"

LOGO = f"""{BLUE}
    _    ____ ___ _____ ___ _     _____
   / \\  |  _ \\_ _|  ___|_ _| |   | ____|
  / _ \\ | |_) | || |_   | || |   |  _|
 / ___ \\|  __/| ||  _|  | || |___| |___
/_/   \\_\\_|  |___|_|   |___|_____|_____|
{RESET}"""

WELCOME_TITLE = "apifile CLI - Chunked uploads, search and download"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "apifile> "

HELP_TEXT = """Available commands:
  login <username> <password>         Log in and store tokens
  logout                              Forget stored tokens
  whoami                              Show the logged-in user
  upload <path> [<path> ...]          Upload files in chunks
  search <query>                      Search files by name
  download <file_id> [output_dir]     Download a file (defaults to downloads/)
  health                              Check API health
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Examples:
  login alice mypassword123
  upload report.pdf "scans/march 2024.zip"
  search report
  download 3f2c9a1e-7b44-4d0e-9d0b-1c2f3a4b5c6d downloads/reports"""

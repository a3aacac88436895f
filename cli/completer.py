"""Custom completer for apifile CLI with local file autocompletion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS


class ApifileCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Local path completion for the 'upload' command
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        """
        Generate completions based on cursor position and context.

        For the first token, completes command names.
        For 'upload' arguments, completes files and directories relative to the working directory.
        """
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        if tokens[0].lower() != "upload":
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        already_typed = set(tokens[1:])
        if not is_typing_new_token:
            already_typed.discard(current_word)

        yield from self._complete_paths(current_word, already_typed)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_paths(self, partial: str, exclude: set) -> Iterable[Completion]:
        """
        Complete paths under the directory part of the partial input.

        Directories are suggested with a trailing slash; hidden entries are
        only suggested when the partial name starts with a dot.
        """
        if "/" in partial:
            dir_part, name_part = partial.rsplit("/", 1)
            base = Path(dir_part or "/")
            prefix = f"{dir_part}/"
        else:
            base, name_part, prefix = Path("."), partial, ""

        base = base.expanduser()
        if not base.is_absolute():
            base = Path.cwd() / base
        if not base.is_dir():
            return

        for item in sorted(base.iterdir(), key=lambda p: p.name.lower()):
            if item.name.startswith(".") and not name_part.startswith("."):
                continue
            if not item.name.lower().startswith(name_part.lower()):
                continue
            suggestion = f"{prefix}{item.name}"
            if item.is_dir():
                yield Completion(f"{suggestion}/", start_position=-len(partial), display=f"{item.name}/")
            elif item.is_file() and suggestion not in exclude:
                yield Completion(suggestion, start_position=-len(partial), display=item.name)

"""Interactive prompt using prompt_toolkit."""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from prompt_toolkit.key_binding import KeyBindings

if TYPE_CHECKING:
    from prompt_toolkit.key_binding.key_processor import KeyPressEvent

    from srcon.session import RconSession

from srcon.config import HISTORY_FILE, ensure_config_dir
from srcon.errors import ConnectionError as RconConnectionError
from srcon.errors import RconError

log = logging.getLogger(__name__)

EXIT_COMMANDS = frozenset({".exit", "exit", "quit"})


def _create_key_bindings() -> KeyBindings:
    """Create custom key bindings for the prompt.

    Ctrl+C behavior:
    - If the current line has text, abandon it (show but don't execute) and start fresh
    - If the current line is empty, exit the prompt

    Ctrl+D on an empty line is handled by prompt_toolkit itself (EOFError).
    """
    kb = KeyBindings()

    @kb.add("c-c")
    def _(event: KeyPressEvent) -> None:
        """Handle Ctrl+C: abandon line if non-empty, exit if empty."""
        buffer = event.app.current_buffer
        if buffer.text:
            # Abandon the current line - insert newline and reset buffer
            print()  # Move to next line
            buffer.reset()
            event.app.renderer.reset()  # Force prompt redraw
        else:
            # Leave the prompt loop
            event.app.exit(exception=KeyboardInterrupt)

    return kb


async def run_repl(
    session: RconSession,
    *,
    prompt: PromptSession[str] | None = None,
) -> None:
    """Read commands from the terminal and print the server's responses.

    Args:
        session: An already-connected and authenticated RconSession. It is
            closed when the loop ends.
        prompt: The prompt_toolkit session to read from; a new one with file
            history is created when omitted.
    """
    if prompt is None:
        ensure_config_dir()
        prompt = PromptSession(
            history=FileHistory(str(HISTORY_FILE)),
            key_bindings=_create_key_bindings(),
        )

    try:
        while True:
            try:
                text = (
                    await prompt.prompt_async(HTML("<ansigreen>rcon</ansigreen>> "))
                ).strip()
            except (EOFError, KeyboardInterrupt):
                print()
                break

            if not text:
                continue

            # Commands handled locally, never sent to the server
            if text in EXIT_COMMANDS:
                break

            if not await _execute_command(session, text):
                break
    finally:
        print("Closing connection...")
        await session.wait_closed()


async def _execute_command(session: RconSession, text: str) -> bool:
    """Run one command and print its response.

    Returns False once the connection is gone.
    """
    print(f'Executing "{text}"')
    try:
        response = await session.send_command(text)
    except RconConnectionError as e:
        print(f"Connection lost: {e}", file=sys.stderr)
        return False
    except TimeoutError:
        print("Timed out waiting for a response", file=sys.stderr)
        return True
    except RconError as e:
        log.debug("Command %r failed", text, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return True

    if response:
        print(response)
    return True

"""Injection of the configured prompt prefix into known shells."""

import enum
import logging
import os
from typing import BinaryIO

from .consts import SENTINEL_FLAG_VAR, STARTUP_SENTINEL

log = logging.getLogger(__name__)

_READ_SIZE = 2048


class KnownShell(enum.Enum):
    """Shells whose prompt we know how to decorate."""

    BASH = "bash"
    ZSH = "zsh"
    FISH = "fish"


class SentinelScanner:
    """Scans a byte stream for the first occurrence of a sentinel string."""

    def __init__(self, sentinel: str) -> None:
        self._pattern = sentinel.encode()
        self._pos = 0
        self._matches = 0

    def transition(self, byte: int) -> bool:
        """Feed one byte; True exactly when the first full match completes."""
        if self._pattern and byte == self._pattern[self._pos]:
            self._pos += 1
            if self._pos == len(self._pattern):
                self._pos = 0
                self._matches += 1
                log.debug("got sentinel match #%d", self._matches)
                return self._matches == 1
            return False
        self._pos = 0
        return False


def shell_from_name(name: str) -> KnownShell:
    """Classify a shell by its process or binary name."""
    for shell in KnownShell:
        if name.endswith(shell.value):
            return shell
    raise ValueError(f"unknown shell: {name!r}")


def sniff_shell(pid: int) -> KnownShell:
    """Determine which shell runs under ``pid`` by looking at /proc."""
    try:
        name = os.path.basename(os.readlink(f"/proc/{pid}/exe"))
    except PermissionError:
        with open(f"/proc/{pid}/comm", encoding="utf-8") as comm:
            name = comm.read().strip()
    log.info("shell_proc_name: %s", name)
    return shell_from_name(name)


def prefix_script(prompt_prefix: str, session_name: str, shell: KnownShell | None) -> str:
    """Build the script that adds ``prompt_prefix`` to the prompt of ``shell``.

    ``$SHPOOL_SESSION_NAME`` in the prefix is replaced by the session name.
    An unknown shell (None) gets an empty script.
    """
    prefix = prompt_prefix.replace("$SHPOOL_SESSION_NAME", session_name)
    if shell is KnownShell.BASH:
        return f"""
            if [[ -z "${{PROMPT_COMMAND+x}}" ]]; then
               PS1="{prefix}${{PS1}}"
            else
               SHPOOL__OLD_PROMPT_COMMAND="${{PROMPT_COMMAND}}"
               SHPOOL__OLD_PS1="${{PS1}}"
               function __shpool__prompt_command() {{
                  PS1="${{SHPOOL__OLD_PS1}}"
                  for prompt_hook in ${{SHPOOL__OLD_PROMPT_COMMAND}}
                  do
                    ${{prompt_hook}}
                  done
                  PS1="{prefix}${{PS1}}"
               }}
               PROMPT_COMMAND=__shpool__prompt_command
            fi
        """
    if shell is KnownShell.ZSH:
        return f"""
            typeset -a precmd_functions
            SHPOOL__OLD_PROMPT="${{PROMPT}}"
            function __shpool__reset_rprompt() {{
                PROMPT="${{SHPOOL__OLD_PROMPT}}"
            }}
            precmd_functions[1,0]=(__shpool__reset_rprompt)
            function __shpool__prompt_command() {{
               PROMPT="{prefix}${{PROMPT}}"
            }}
            precmd_functions+=(__shpool__prompt_command)
        """
    if shell is KnownShell.FISH:
        return f"""
            functions --copy fish_prompt shpool__old_prompt
            function fish_prompt; echo -n "{prefix}"; shpool__old_prompt; end
        """
    return ""


def sentinel_command(kind: str, pid: int) -> str:
    """The shell line that makes the daemon binary print a sentinel."""
    return f"\n {SENTINEL_FLAG_VAR}={kind} /proc/{pid}/exe daemon\n"


def _send(pty_master: BinaryIO, text: str) -> None:
    pty_master.write(text.encode())
    pty_master.flush()


def wait_for_startup(pty_master: BinaryIO) -> None:
    """Ask the shell to print the startup sentinel and read until it appears.

    Raises EOFError if the pty closes first.
    """
    scanner = SentinelScanner(STARTUP_SENTINEL)
    _send(pty_master, sentinel_command("startup", os.getpid()))

    while True:
        chunk = pty_master.read(_READ_SIZE)
        if not chunk:
            raise EOFError("pty closed while scanning for the startup sentinel")
        log.debug("buf=%r", chunk)
        # Trailing data after the sentinel is dropped; the prompt sentinel
        # that follows the injected script handles the hand-off.
        if any(scanner.transition(byte) for byte in chunk):
            return


def maybe_inject_prefix(
    pty_master: BinaryIO, shell_pid: int, prompt_prefix: str, session_name: str
) -> None:
    """Inject ``prompt_prefix`` into the shell behind ``pty_master``.

    A blank prefix does nothing. If the shell cannot be identified, only the
    prompt sentinel command is sent.
    """
    if not prompt_prefix:
        return

    wait_for_startup(pty_master)

    try:
        shell: KnownShell | None = sniff_shell(shell_pid)
    except (OSError, ValueError) as err:
        log.warning("could not sniff shell: %s", err)
        shell = None
    log.debug("sniffed shell type: %s", shell)

    script = prefix_script(prompt_prefix, session_name, shell)
    script += sentinel_command("prompt", os.getpid())
    log.debug("injecting prefix script %r", script)
    _send(pty_master, script)
"""The shpool config file: its schema, layering and live reloading.

Config files are read in increasing priority order; for each top level
option a value from a later file replaces one from an earlier file.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
import tomllib
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, ClassVar

from .config_watcher import ConfigWatcher
from .keybindings import Action

log = logging.getLogger(__name__)

SYSTEM_CONFIG = Path("/etc/shpool/config.toml")

_U16_MAX = 0xFFFF


class ConfigError(ValueError):
    """A config file could not be parsed or holds an invalid value."""


def _check_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"invalid type for {key}: expected a boolean")
    return value


def _check_str(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"invalid type for {key}: expected a string")
    return value


def _check_uint(key: str, value: Any, maximum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"invalid type for {key}: expected an integer")
    if value < 0 or (maximum is not None and value > maximum):
        raise ConfigError(f"invalid value for {key}: {value} is out of range")
    return value


def _check_u16(key: str, value: Any) -> int:
    return _check_uint(key, value, _U16_MAX)


def _check_str_list(key: str, value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ConfigError(f"invalid type for {key}: expected an array of strings")
    return tuple(_check_str(key, item) for item in value)


def _check_str_map(key: str, value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        raise ConfigError(f"invalid type for {key}: expected a table of strings")
    return {name: _check_str(f"{key}.{name}", item) for name, item in value.items()}


def _check_table(key: str, value: Any) -> Mapping[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"invalid type for {key}: expected a table")
    return value


@dataclass(frozen=True)
class SessionRestoreMode:
    """What to replay from the output spool when reattaching.

    ``simple`` replays nothing, ``screen`` restores one screen full of
    output, and ``lines`` restores the last ``lines`` lines.
    """

    name: str
    lines: int | None = None

    SIMPLE: ClassVar[SessionRestoreMode]
    SCREEN: ClassVar[SessionRestoreMode]

    @classmethod
    def from_lines(cls, lines: int) -> SessionRestoreMode:
        return cls("lines", _check_u16("session_restore_mode.lines", lines))

    @classmethod
    def default(cls) -> SessionRestoreMode:
        return cls.SCREEN

    @classmethod
    def from_toml(cls, value: Any) -> SessionRestoreMode:
        if isinstance(value, str):
            if value == "simple":
                return cls.SIMPLE
            if value == "screen":
                return cls.SCREEN
            raise ConfigError(f"unknown session_restore_mode: {value!r}")
        if isinstance(value, dict) and len(value) == 1 and "lines" in value:
            return cls.from_lines(value["lines"])
        raise ConfigError(f"invalid session_restore_mode: {value!r}")


SessionRestoreMode.SIMPLE = SessionRestoreMode("simple")
SessionRestoreMode.SCREEN = SessionRestoreMode("screen")


@dataclass(frozen=True)
class MotdDisplayMode:
    """When and how the message of the day is shown.

    ``never`` shows nothing, ``dump`` writes it straight to the screen of
    a new session, and ``pager`` shows it with the program ``bin`` on
    every attach, at most once per ``show_every`` if that is given.
    """

    name: str
    bin: str | None = None
    show_every: str | None = None

    NEVER: ClassVar[MotdDisplayMode]
    DUMP: ClassVar[MotdDisplayMode]

    @classmethod
    def pager(cls, bin: str, show_every: str | None = None) -> MotdDisplayMode:
        return cls("pager", bin, show_every)

    @classmethod
    def default(cls) -> MotdDisplayMode:
        return cls.NEVER

    @classmethod
    def from_toml(cls, value: Any) -> MotdDisplayMode:
        if isinstance(value, str):
            if value == "never":
                return cls.NEVER
            if value == "dump":
                return cls.DUMP
            raise ConfigError(f"unknown motd mode: {value!r}")
        if isinstance(value, dict) and len(value) == 1 and "pager" in value:
            table = _check_table("motd.pager", value["pager"])
            if "bin" not in table:
                raise ConfigError("missing field bin in motd.pager")
            bin_path = _check_str("motd.pager.bin", table["bin"])
            show_every = table.get("show_every")
            if show_every is not None:
                show_every = _check_str("motd.pager.show_every", show_every)
            return cls.pager(bin_path, show_every)
        raise ConfigError(f"invalid motd mode: {value!r}")


MotdDisplayMode.NEVER = MotdDisplayMode("never")
MotdDisplayMode.DUMP = MotdDisplayMode("dump")


@dataclass(frozen=True)
class Keybinding:
    """A user supplied keybinding and the action it triggers."""

    binding: str
    action: Action

    @classmethod
    def from_toml(cls, value: Any) -> Keybinding:
        table = _check_table("keybinding", value)
        for required in ("binding", "action"):
            if required not in table:
                raise ConfigError(f"missing field {required} in keybinding")
        binding = _check_str("keybinding.binding", table["binding"])
        action_name = _check_str("keybinding.action", table["action"])
        try:
            action = Action(action_name)
        except ValueError:
            raise ConfigError(f"unknown keybinding action: {action_name!r}") from None
        return cls(binding, action)


def _parse_keybindings(key: str, value: Any) -> tuple[Keybinding, ...]:
    if not isinstance(value, list):
        raise ConfigError(f"invalid type for {key}: expected an array of tables")
    return tuple(Keybinding.from_toml(item) for item in value)


@dataclass(frozen=True)
class Config:
    """The shpool configuration. Unset options are None."""

    # New shells do not load rc files (bash only).
    norc: bool | None = None
    # Disable the tty echo flag for spawned shells.
    noecho: bool | None = None
    # Do not symlink SSH_AUTH_SOCK into the session environment.
    nosymlink_ssh_auth_sock: bool | None = None
    # Do not inject the variables from /etc/environment.
    noread_etc_environment: bool | None = None
    # Do not spawn a daemon automatically when none is running.
    nodaemonize: bool | None = None
    # Wait forever for an automatically spawned daemon to come up.
    nodaemonize_timeout: bool | None = None
    # Overrides the user's default shell.
    shell: str | None = None
    # Environment variables injected into the initial shell.
    env: dict[str, str] | None = None
    # Variables forwarded from the attaching environment to new shells.
    forward_env: tuple[str, ...] | None = None
    # The initial PATH of spawned shells.
    initial_path: str | None = None
    # What to do when reattaching to an existing session.
    session_restore_mode: SessionRestoreMode | None = None
    # Lines of output kept in the output spool.
    output_spool_lines: int | None = None
    # Width of the in-memory terminal used for session restoration.
    vt100_output_spool_width: int | None = None
    # User supplied keybindings.
    keybinding: tuple[Keybinding, ...] | None = None
    # Prefix for the prompt of new shells; $SHPOOL_SESSION_NAME is expanded.
    prompt_prefix: str | None = None
    # When and how to display the message of the day.
    motd: MotdDisplayMode | None = None
    # Arguments overriding those passed to pam_motd.so.
    motd_args: tuple[str, ...] | None = None

    def merge(self, another: Config) -> Config:
        """Combine with ``another``; options set here take priority."""
        return Config(
            **{
                f.name: (
                    getattr(self, f.name)
                    if getattr(self, f.name) is not None
                    else getattr(another, f.name)
                )
                for f in fields(self)
            }
        )


_FIELD_PARSERS: dict[str, Callable[[str, Any], Any]] = {
    "norc": _check_bool,
    "noecho": _check_bool,
    "nosymlink_ssh_auth_sock": _check_bool,
    "noread_etc_environment": _check_bool,
    "nodaemonize": _check_bool,
    "nodaemonize_timeout": _check_bool,
    "shell": _check_str,
    "env": _check_str_map,
    "forward_env": _check_str_list,
    "initial_path": _check_str,
    "session_restore_mode": lambda _key, value: SessionRestoreMode.from_toml(value),
    "output_spool_lines": _check_uint,
    "vt100_output_spool_width": _check_u16,
    "keybinding": _parse_keybindings,
    "prompt_prefix": _check_str,
    "motd": lambda _key, value: MotdDisplayMode.from_toml(value),
    "motd_args": _check_str_list,
}


def parse_config(text: str) -> Config:
    """Parse the TOML text of one config file. Unknown keys are ignored."""
    try:
        table = tomllib.loads(text)
    except tomllib.TOMLDecodeError as err:
        raise ConfigError(str(err)) from err
    return Config(
        **{
            key: parser(key, table[key])
            for key, parser in _FIELD_PARSERS.items()
            if key in table
        }
    )


def load_config(config_files: Iterable[str | os.PathLike]) -> Config:
    """Load and merge config files; later files take priority.

    Files that cannot be read are skipped. A file that cannot be parsed
    raises ConfigError.
    """
    config = Config()
    for entry in config_files:
        path = Path(entry)
        log.info("loading config from %s", path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as err:
            log.warning("skip reading config file %s: %s", path, err)
            continue
        try:
            new_config = parse_config(text)
        except ConfigError as err:
            log.warning("error parsing config file: %s", err)
            raise ConfigError(f"parsing config toml {path}: {err}") from err
        config = new_config.merge(config)
    return config


def _config_base_dir() -> Path:
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = os.environ.get("XDG_CONFIG_DIR")
    if xdg is not None:
        return Path(xdg)
    return Path.home() / ".config"


def config_dir() -> Path:
    """The directory holding the user level config file."""
    return _config_base_dir() / "shpool"


class Manager:
    """Holds the current config and reloads it whenever a config file changes.

    Always fetch the config through ``get``; it may change at any time.
    """

    def __init__(self, config_file: str | os.PathLike | None = None) -> None:
        if config_file is None:
            self._files = [SYSTEM_CONFIG, config_dir() / "config.toml"]
        else:
            log.info("parsing explicitly passed in config (%s)", config_file)
            self._files = [Path(config_file)]

        self._lock = threading.Lock()
        self._config = load_config(self._files)
        log.info("starting with config: %r", self._config)

        self._watcher = ConfigWatcher(self._reload)
        try:
            for path in self._files:
                self._watcher.watch(path)
        except BaseException:
            self._watcher.close()
            raise

    def _reload(self) -> None:
        log.info("reloading config")
        try:
            config = load_config(self._files)
        except ConfigError as err:
            log.warning("error loading config file: %s", err)
            return
        log.info("new config: %r", config)
        with self._lock:
            self._config = config

    def get(self) -> Config:
        """The current config value."""
        with self._lock:
            return self._config

    def close(self) -> None:
        """Stop watching the config files."""
        self._watcher.close()

    def __enter__(self) -> Manager:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __repr__(self) -> str:
        return repr(self.get())
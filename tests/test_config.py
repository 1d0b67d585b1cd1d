import time

import pytest

from shpool.config import (
    Config,
    ConfigError,
    Keybinding,
    Manager,
    MotdDisplayMode,
    SessionRestoreMode,
    config_dir,
    load_config,
    parse_config,
)
from shpool.keybindings import Action


def test_parse_simple_restore_mode():
    config = parse_config('session_restore_mode = "simple"\n')
    assert config.session_restore_mode == SessionRestoreMode.SIMPLE


def test_parse_lines_restore_mode():
    config = parse_config("session_restore_mode = { lines = 10 }\n")
    assert config.session_restore_mode == SessionRestoreMode.from_lines(10)
    assert config.session_restore_mode.lines == 10


def test_parse_screen_restore_mode():
    config = parse_config('session_restore_mode = "screen"\n')
    assert config.session_restore_mode == SessionRestoreMode.SCREEN


def test_parse_keybinding():
    config = parse_config('[[keybinding]]\nbinding = "Ctrl-q a"\naction = "detach"\n')
    assert config.keybinding == (Keybinding("Ctrl-q a", Action.DETACH),)


def test_parse_empty_is_default():
    assert parse_config("") == Config()


def test_parse_motd_modes():
    assert parse_config('motd = "dump"').motd == MotdDisplayMode.DUMP
    assert parse_config('motd = "never"').motd == MotdDisplayMode.NEVER
    pager = parse_config('motd = { pager = { bin = "less", show_every = "1d" } }').motd
    assert pager == MotdDisplayMode.pager("less", "1d")


def test_defaults_of_modes():
    assert SessionRestoreMode.default() == SessionRestoreMode.SCREEN
    assert MotdDisplayMode.default() == MotdDisplayMode.NEVER


def test_parse_full_set_of_options():
    config = parse_config(
        """
        norc = true
        shell = "/bin/zsh"
        forward_env = ["A", "B"]
        output_spool_lines = 500
        vt100_output_spool_width = 120
        prompt_prefix = ""
        [env]
        FOO = "bar"
        """
    )
    assert config.norc is True
    assert config.shell == "/bin/zsh"
    assert config.forward_env == ("A", "B")
    assert config.output_spool_lines == 500
    assert config.vt100_output_spool_width == 120
    assert config.prompt_prefix == ""
    assert config.env == {"FOO": "bar"}


def test_unknown_keys_are_ignored():
    assert parse_config('something_else = 3\nshell = "sh"').shell == "sh"


@pytest.mark.parametrize(
    "text",
    [
        "norc = 1",
        'session_restore_mode = "bogus"',
        "session_restore_mode = { lines = -1 }",
        "session_restore_mode = { lines = 70000 }",
        "vt100_output_spool_width = 70000",
        'motd = { pager = { show_every = "1d" } }',
        '[[keybinding]]\nbinding = "a"\naction = "explode"',
        '[[keybinding]]\naction = "detach"',
        "forward_env = [1, 2]",
        "this is not toml",
    ],
)
def test_parse_errors(text):
    with pytest.raises(ConfigError):
        parse_config(text)


def test_merge_simple_value():
    higher = Config(
        norc=None,
        noecho=None,
        shell="abc",
        session_restore_mode=SessionRestoreMode.SIMPLE,
    )
    lower = Config(
        norc=True,
        noecho=None,
        shell=None,
        session_restore_mode=SessionRestoreMode.from_lines(42),
    )
    merged = higher.merge(lower)
    assert merged.norc is True
    assert merged.noecho is None
    assert merged.shell == "abc"
    assert merged.session_restore_mode == SessionRestoreMode.SIMPLE


def test_merge_vec_value():
    higher = Config(forward_env=("abc", "efg"), motd_args=None)
    lower = Config(forward_env=None, motd_args=("hij", "klm"))
    merged = higher.merge(lower)
    assert merged.forward_env == ("abc", "efg")
    assert merged.motd_args == ("hij", "klm")


def test_merge_map_value():
    higher = Config(env={"key1": "value1", "key2": "value2"})
    lower = Config(env={"key3": "value3", "key4": "value4"})
    assert higher.merge(lower).env == {"key1": "value1", "key2": "value2"}


def test_load_config_later_files_win(tmp_path):
    first = tmp_path / "first.toml"
    second = tmp_path / "second.toml"
    first.write_text('shell = "first"\nnorc = true\n')
    second.write_text('shell = "second"\n')
    config = load_config([first, second])
    assert config.shell == "second"
    assert config.norc is True


def test_load_config_skips_missing(tmp_path):
    present = tmp_path / "present.toml"
    present.write_text('initial_path = "/bin"\n')
    config = load_config([tmp_path / "missing.toml", present])
    assert config.initial_path == "/bin"


def test_load_config_nothing_gives_default(tmp_path):
    assert load_config([tmp_path / "missing.toml"]) == Config()


def test_load_config_bad_file_raises(tmp_path):
    bad = tmp_path / "bad.toml"
    bad.write_text("norc = [")
    with pytest.raises(ConfigError, match="parsing config toml"):
        load_config([bad])


def test_config_dir_uses_xdg_config_dir(monkeypatch, tmp_path):
    monkeypatch.setattr("sys.platform", "linux")
    monkeypatch.setenv("XDG_CONFIG_DIR", str(tmp_path))
    assert config_dir() == tmp_path / "shpool"


def test_config_dir_falls_back_to_home(monkeypatch, tmp_path):
    monkeypatch.setattr("sys.platform", "linux")
    monkeypatch.delenv("XDG_CONFIG_DIR", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert config_dir() == tmp_path / ".config" / "shpool"


def _wait_for(predicate, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


def test_manager_reads_explicit_file_and_reloads(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('shell = "first"\n')
    with Manager(str(path)) as manager:
        assert manager.get().shell == "first"
        path.write_text('shell = "second"\n')
        assert _wait_for(lambda: manager.get().shell == "second")


def test_manager_keeps_old_config_on_bad_reload(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('shell = "first"\n')
    with Manager(path) as manager:
        path.write_text("shell = [")
        time.sleep(0.5)
        assert manager.get().shell == "first"


def test_manager_default_uses_user_config(monkeypatch, tmp_path):
    monkeypatch.setattr("sys.platform", "linux")
    monkeypatch.setenv("XDG_CONFIG_DIR", str(tmp_path))
    user_dir = tmp_path / "shpool"
    user_dir.mkdir()
    (user_dir / "config.toml").write_text('prompt_prefix = "user"\n')
    with Manager() as manager:
        assert manager.get().prompt_prefix == "user"


def test_manager_bad_initial_config_raises(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("norc = 5\n")
    with pytest.raises(ConfigError):
        Manager(path)
import pytest

from shpool.common import resolve_sessions


def test_empty_without_env_raises(monkeypatch, capsys):
    monkeypatch.delenv("SHPOOL_SESSION_NAME", raising=False)
    with pytest.raises(ValueError, match="no session to kill"):
        resolve_sessions([], "kill")
    assert "no session to kill" in capsys.readouterr().err


def test_empty_uses_env_var(monkeypatch):
    monkeypatch.setenv("SHPOOL_SESSION_NAME", "sh1")
    assert resolve_sessions([], "kill") == ["sh1"]


def test_explicit_sessions_win_over_env(monkeypatch):
    monkeypatch.setenv("SHPOOL_SESSION_NAME", "sh1")
    assert resolve_sessions(["sh1", "sh2"], "kill") == ["sh1", "sh2"]


def test_input_is_not_mutated(monkeypatch):
    monkeypatch.setenv("SHPOOL_SESSION_NAME", "sh1")
    given: list[str] = []
    result = resolve_sessions(given, "detach")
    assert given == []
    assert result == ["sh1"]


def test_action_appears_in_error(monkeypatch):
    monkeypatch.delenv("SHPOOL_SESSION_NAME", raising=False)
    with pytest.raises(ValueError, match="no session to detach"):
        resolve_sessions(iter(()), "detach")
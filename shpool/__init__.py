"""Config, keybinding, prompt and environment helpers for a shell session pool."""

__version__ = "0.1.0"
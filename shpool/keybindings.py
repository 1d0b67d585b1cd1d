"""Mapping of keybindings typed into a session to actions.

A keybinding is written in a small language:

    sequence ::= chord | chord ' ' chord
    chord    ::= key | key '-' chord
    key      ::= mod | sym
    mod      ::= 'Ctrl'
    sym      ::= 'Space' | <lowercase letters> | <numbers>

Chords bind tighter than sequences. A chord is pressed all at once,
while the chords of a sequence are pressed one after another. Only
single keys other than 'Ctrl', and chords of the form 'Ctrl-x', are
supported.
"""

from __future__ import annotations

import enum
import string
from collections.abc import Hashable, Iterable
from dataclasses import dataclass, field
from typing import Any, ClassVar

_MAX_CHORDS = 255

_LEXER_WORDS = ("Ctrl", "Space")

_SYM_CHARS = frozenset(string.digits + string.ascii_letters)

# Key codes produced by Ctrl-<key> combinations, found by logging what a
# terminal sends for each of them.
CONTROL_CODES: dict[str, int] = {
    "Ctrl-Space": 0,
    "Ctrl-a": 1,
    "Ctrl-b": 2,
    "Ctrl-c": 3,
    "Ctrl-d": 4,
    "Ctrl-e": 5,
    "Ctrl-f": 6,
    "Ctrl-g": 7,
    "Ctrl-h": 8,
    "Ctrl-i": 9,
    "Ctrl-j": 10,
    "Ctrl-k": 11,
    "Ctrl-l": 12,
    "Ctrl-m": 13,
    "Ctrl-n": 14,
    "Ctrl-o": 15,
    "Ctrl-p": 16,
    "Ctrl-q": 17,
    "Ctrl-r": 18,
    "Ctrl-s": 19,
    "Ctrl-t": 20,
    "Ctrl-u": 21,
    "Ctrl-v": 22,
    "Ctrl-w": 23,
    "Ctrl-y": 24,
    "Ctrl-x": 25,
    "Ctrl-z": 26,
    "Ctrl-@": 0,
    "Ctrl-2": 0,
    "Ctrl-[": 27,
    "Ctrl-3": 27,
    "Ctrl-\\": 28,
    "Ctrl-4": 28,
    "Ctrl-]": 29,
    "Ctrl-5": 29,
    "Ctrl-^": 30,
    "Ctrl-6": 30,
    "Ctrl-_": 31,
    "Ctrl-7": 31,
    "Ctrl-?": 127,
    "Ctrl-8": 127,
    "Ctrl-0": 127,
}


class KeybindingError(ValueError):
    """A keybinding could not be tokenized, parsed or compiled."""


class Action(enum.Enum):
    """What to do when a keybinding is completed."""

    DETACH = "detach"
    NOOP = "noop"


@dataclass(frozen=True)
class BindingResult:
    """The outcome of feeding one byte to a Bindings engine."""

    action: Action | None = None
    partial: bool = False

    NO_MATCH: ClassVar[BindingResult]
    PARTIAL: ClassVar[BindingResult]

    @classmethod
    def matched(cls, action: Action) -> BindingResult:
        return cls(action=action)

    @property
    def is_match(self) -> bool:
        return self.action is not None


BindingResult.NO_MATCH = BindingResult()
BindingResult.PARTIAL = BindingResult(partial=True)


@dataclass(frozen=True)
class Token:
    """A lexer token: a key name, or a dash when ``key`` is None."""

    key: str | None = None

    DASH: ClassVar[Token]

    @property
    def is_dash(self) -> bool:
        return self.key is None


Token.DASH = Token()


def _is_ctrl(key: str) -> bool:
    return key == "Ctrl"


def _is_sym(key: str) -> bool:
    return key == "Space" or (len(key) == 1 and key in _SYM_CHARS)


def _is_key(key: str) -> bool:
    return _is_ctrl(key) or _is_sym(key)


@dataclass(frozen=True)
class Chord:
    """Keys that must be held down together."""

    keys: tuple[str, ...]

    def __str__(self) -> str:
        return "-".join(self.keys)

    def check_valid(self) -> None:
        """Raise KeybindingError unless this is ``sym`` or ``Ctrl-sym``."""
        if not all(_is_key(key) for key in self.keys):
            raise KeybindingError(f"invalid chord: {self}: invalid key")

        if len(self.keys) == 1:
            if _is_ctrl(self.keys[0]):
                raise KeybindingError(f"invalid chord: {self}: Ctrl is not a cord")
        elif len(self.keys) == 2:
            if not _is_ctrl(self.keys[0]):
                raise KeybindingError(
                    f"invalid chord: {self}: Ctrl is the only supported mod key"
                )
            if _is_ctrl(self.keys[1]):
                raise KeybindingError(f"invalid chord: {self}: Ctrl cannot be repeated")
        else:
            raise KeybindingError(f"invalid chord: {self}")

    def key_code(self) -> int:
        """The byte this chord produces when pressed."""
        self.check_valid()

        if len(self.keys) == 1 and _is_sym(self.keys[0]):
            if self.keys[0] == "Space":
                return ord(" ")
            return ord(self.keys[0]) & 0xFF

        if len(self.keys) == 2:
            code = CONTROL_CODES.get(str(self))
            if code is not None:
                return code

        raise KeybindingError(f"unknown key code for chord: {self}")


@dataclass(frozen=True)
class Sequence:
    """Chords to be pressed one after another."""

    chords: tuple[Chord, ...] = field(default_factory=tuple)


def tokenize(src: Iterable[str]) -> list[Token]:
    """Split a keybinding source string into tokens."""
    tokens: list[Token] = []
    word = ""
    for c in src:
        if c.isspace():
            continue

        candidate = word + c
        if any(w.startswith(candidate) for w in _LEXER_WORDS):
            if candidate in _LEXER_WORDS:
                tokens.append(Token(candidate))
                word = ""
            else:
                word = candidate
            continue

        for ch in candidate:
            if ch == "-":
                tokens.append(Token.DASH)
            elif "a" <= ch <= "z":
                tokens.append(Token(ch))
            else:
                raise KeybindingError(f"unexpected char: '{ch}'")
        word = ""

    return tokens


def parse(tokens: Iterable[Token]) -> Sequence:
    """Group tokens into a sequence of chords."""
    chords: list[Chord] = []
    keys: list[str] = []
    saw_dash = True
    for token in tokens:
        if token.is_dash:
            if saw_dash:
                raise KeybindingError("unexpected DASH token")
            saw_dash = True
        elif saw_dash:
            keys.append(token.key)
            saw_dash = False
        else:
            chords.append(Chord(tuple(keys)))
            keys = [token.key]

    if keys:
        chords.append(Chord(tuple(keys)))

    return Sequence(tuple(chords))


# Cursor positions in a _Trie: the root index means "start", None means
# the input so far matches nothing.
_START = 0


class _Trie:
    """A trie over hashable symbols, walked one symbol at a time."""

    def __init__(self) -> None:
        self._children: list[dict[Hashable, int]] = [{}]
        self._values: list[Any] = [None]

    def insert(self, word: Iterable[Hashable], value: Any) -> None:
        node = _START
        for sym in word:
            nxt = self._children[node].get(sym)
            if nxt is None:
                nxt = len(self._children)
                self._children.append({})
                self._values.append(None)
                self._children[node][sym] = nxt
            node = nxt
        self._values[node] = value

    def advance(self, cursor: int | None, sym: Hashable) -> int | None:
        if cursor is None:
            return None
        return self._children[cursor].get(sym)

    def value(self, cursor: int | None) -> Any:
        if cursor is None or cursor == _START:
            return None
        return self._values[cursor]


class Bindings:
    """Scans user input bytes and reports completed keybindings."""

    def __init__(self, bindings: Iterable[tuple[str, Action]]) -> None:
        self._chords = _Trie()
        self._sequences = _Trie()
        self._chord_cursor: int | None = _START
        self._sequence_cursor: int | None = _START

        atoms: dict[Chord, int] = {}
        for source, action in bindings:
            try:
                tokens = tokenize(source)
            except KeybindingError as err:
                raise KeybindingError(f"tokenizing keybinding: {err}") from err
            try:
                sequence = parse(tokens)
            except KeybindingError as err:
                raise KeybindingError(f"parsing keybinding: {err}") from err

            for chord in sequence.chords:
                code = chord.key_code()
                atom = atoms.setdefault(chord, len(atoms))
                if len(atoms) >= _MAX_CHORDS:
                    raise KeybindingError(
                        f"only up to {_MAX_CHORDS} unique chords are supported at a time"
                    )
                self._chords.insert([code], atom)

            self._sequences.insert((atoms[chord] for chord in sequence.chords), action)

    def transition(self, byte: int) -> BindingResult:
        """Feed the next input byte, reporting any completed binding."""
        self._chord_cursor = self._chords.advance(self._chord_cursor, byte)
        atom = self._chords.value(self._chord_cursor)

        if atom is not None:
            self._chord_cursor = _START
            self._sequence_cursor = self._sequences.advance(self._sequence_cursor, atom)
            if self._sequence_cursor is None:
                self._sequence_cursor = _START
                return BindingResult.NO_MATCH
            action = self._sequences.value(self._sequence_cursor)
            if action is None:
                return BindingResult.PARTIAL
            self._sequence_cursor = _START
            return BindingResult.matched(action)

        if self._chord_cursor is not None:
            return BindingResult.PARTIAL

        self._sequence_cursor = _START
        self._chord_cursor = _START
        return BindingResult.NO_MATCH
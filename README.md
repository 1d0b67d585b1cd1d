# shpool

Python building blocks for a persistent shell session pool. The package
holds the parts of a session daemon that can be used without a running
server.

## Modules

- `shpool.config` has the following pieces:
  - `parse_config` parses the TOML text of one config file into a frozen
    `Config`. Unknown keys are ignored. Values of the wrong type raise
    `ConfigError`.
  - `Config.merge` combines two configs. Options that are set on the first
    config win.
  - `load_config` reads a list of files and merges them, with later files
    taking priority. Unreadable files are skipped.
  - `config_dir` gives the user config directory. It is
    `$XDG_CONFIG_DIR/shpool` or `~/.config/shpool`, and
    `~/Library/Application Support/shpool` on macOS.
  - `Manager` loads `/etc/shpool/config.toml` and then the user's
    `config.toml`, or a single explicitly given file. It reloads them
    whenever one changes. `Manager.get` returns the current value, and
    `Manager.close` stops watching. `Manager` is also a context manager.
  - The option types are `SessionRestoreMode` (`simple`, `screen`,
    `{ lines = N }`), `MotdDisplayMode` (`never`, `dump`,
    `{ pager = { bin = ..., show_every = ... } }`) and `Keybinding`.
- `shpool.config_watcher` has `ConfigWatcher`, which watches config paths,
  including paths that do not exist yet. It calls a handler on a worker
  thread once per burst of changes; the debounce is 0.1 s by default.
  - `watch` adds a path.
  - `close`, or leaving a `with` block, stops it.
- `shpool.watch_events` holds the decision logic behind the watcher, with no
  file-system backend:
  - `best_effort_watch` watches the closest watchable ancestor of a path.
  - `handle_event` decides which paths must be watched again and whether a
    reload is due, given a `WatchEvent`.
- `shpool.keybindings` has the following pieces:
  - `tokenize` and `parse` turn bindings such as `"Ctrl-q a"` into a
    `Sequence` of `Chord`s.
  - `Bindings.transition` scans a raw input byte stream and returns a
    `BindingResult`, which is `NO_MATCH`, `PARTIAL` or a match carrying an
    `Action`.
- `shpool.prompt` has the following pieces:
  - `shell_from_name` and `sniff_shell` recognise bash, zsh and fish.
  - `prefix_script` builds the script that puts a prefix in front of the
    prompt. `$SHPOOL_SESSION_NAME` in the prefix is replaced by the session
    name.
  - `wait_for_startup` and `maybe_inject_prefix` drive this over a pty
    master file object.
  - `SentinelScanner` finds a sentinel string in shell output.
- `shpool.etc_environment` has `parse_compat`, which reads `/etc/environment`
  lines the same way `pam_env` does, including its quirks.
- `shpool.exit_notify` has `ExitNotifier`, which lets threads wait, with an
  optional timeout, for a child's exit status.
- `shpool.common` has `resolve_sessions`. With no session names given, it
  falls back to `$SHPOOL_SESSION_NAME`. If there is still no session, it
  raises `ValueError`.
- `shpool.consts` holds shared constants such as the sentinel strings.

## What it does not do

There is no daemon, no socket protocol, no attach/detach/kill client and no
command-line program here. The package does not fork shells or ptys itself;
`shpool.prompt` works on a pty you hand it.

## Install

```
pip install .
```

## Examples

Loading and merging configuration:

```python
from shpool.config import parse_config

high = parse_config('shell = "/bin/zsh"')
low = parse_config('norc = true\nsession_restore_mode = { lines = 10 }')
merged = high.merge(low)
print(merged.shell, merged.norc, merged.session_restore_mode)
```

Keeping configuration current:

```python
from shpool.config import Manager

with Manager() as manager:
    print(manager.get().prompt_prefix)
```

Matching keybindings:

```python
from shpool.keybindings import Action, Bindings, BindingResult

bindings = Bindings([("Ctrl-Space Ctrl-d", Action.DETACH)])
assert bindings.transition(0) == BindingResult.PARTIAL
assert bindings.transition(4) == BindingResult.matched(Action.DETACH)
```

Reading `/etc/environment`:

```python
from shpool.etc_environment import parse_compat

with open("/etc/environment") as f:
    for key, value in parse_compat(f):
        print(key, value)
```

## Tests

```
pip install .[test]
pytest
```
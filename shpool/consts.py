"""Constants shared across the daemon and its clients."""

# Durations are expressed in seconds.
SOCK_STREAM_TIMEOUT = 0.2
JOIN_POLL_DURATION = 0.1

BUF_SIZE = 1024 * 16

HEARTBEAT_DURATION = 0.5

STDIN_FD = 0
STDERR_FD = 2

# Printed once the shell has started up so that it is safe to sniff
# which kind of shell it is.
STARTUP_SENTINEL = "SHPOOL_STARTUP_SENTINEL"

# Printed once prompt setup is complete, so that output no longer
# needs to be dropped.
PROMPT_SENTINEL = "SHPOOL_PROMPT_SETUP_SENTINEL"

# When set, a `daemon` invocation just prints the requested sentinel
# ("startup" or "prompt") and exits.
SENTINEL_FLAG_VAR = "SHPOOL__INTERNAL__PRINT_SENTINEL"

# If set to "true", the daemon will daemonize itself after launch.
AUTODAEMONIZE_VAR = "SHPOOL__INTERNAL__AUTODAEMONIZE"
"""Default limits and intervals for pyjobmon."""

MAX_JOBS = 32  # Admission capacity, counts terminated jobs too
MAX_ARGS = 4  # Arguments accepted by `run` after the program name
CPU_LIMIT_SECONDS = 600

DEFAULT_INTERVAL = 3.0  # Seconds between watchdog cycles
MIN_INTERVAL = 0.1
REAP_TIMEOUT = 5.0

"""pyjobmon - job control shell and process-tree watchdog."""

__version__ = "0.1.0"

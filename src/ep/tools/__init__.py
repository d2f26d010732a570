"""Diagnostic tooling around pipeline runs."""

from .run_logs import RunLogEntry, load_run_log, run_log_filename, write_run_log

__all__ = ["RunLogEntry", "load_run_log", "run_log_filename", "write_run_log"]

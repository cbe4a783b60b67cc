"""Run reporting: console summary and JSON/YAML report files."""

from compat_harness.reporting.reporter import Reporter, format_status_table, print_run_summary

__all__ = [
    "Reporter",
    "format_status_table",
    "print_run_summary",
]

"""Regression-tracking harness for large compatibility test suites."""

__version__ = "0.1.0"

"""Exam timer and auto-submission service."""

__version__ = "0.1.0"

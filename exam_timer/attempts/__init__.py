"""Exam attempt state, scoring and persistence queries."""

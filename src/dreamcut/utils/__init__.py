"""Shared utilities for DreamCut Analyzer."""

from dreamcut.utils.logging import LogContext, RedactingFilter, setup_logging

__all__ = ["LogContext", "RedactingFilter", "setup_logging"]

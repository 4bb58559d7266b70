"""Shared utilities."""

from .logger import get_logger, log_sync_event, setup_console_logging, setup_file_logging

__all__ = ['get_logger', 'log_sync_event', 'setup_console_logging', 'setup_file_logging']

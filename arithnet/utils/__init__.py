"""Shared utilities."""

from .logger import setup_logging, get_logger, LOG_FORMAT, DATE_FORMAT

__all__ = ['setup_logging', 'get_logger', 'LOG_FORMAT', 'DATE_FORMAT']

"""
Utility functions
"""
from ticketsync.utils.logger import setup_logger, get_logger
from ticketsync.utils.timekeys import format_time_key, parse_time_key
from ticketsync.utils.validators import (
    is_valid_store_key,
    sanitize_input
)

__all__ = [
    "setup_logger",
    "get_logger",
    "format_time_key",
    "parse_time_key",
    "is_valid_store_key",
    "sanitize_input",
]

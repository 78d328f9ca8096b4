"""Shared helpers: payload key/value conversion and logging setup."""
from utils.case import dict_keys_to_camel, dict_keys_to_snake, iso, money
from utils.log import configure_logging

__all__ = [
    "configure_logging",
    "dict_keys_to_camel",
    "dict_keys_to_snake",
    "iso",
    "money",
]

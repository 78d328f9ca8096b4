"""
Key-case and value conversion for API payloads.
Request bodies arrive camelCase, services work in snake_case, and responses go back camelCase with
Decimal money as JSON numbers.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable

from pydantic.alias_generators import to_camel, to_snake


def _convert_keys(obj: Any, convert: Callable[[str], str]) -> Any:
    if isinstance(obj, dict):
        return {convert(k): _convert_keys(v, convert) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_keys(x, convert) for x in obj]
    return obj


def dict_keys_to_camel(obj: Any) -> Any:
    """Nested dicts/lists with snake_case keys -> camelCase keys (analysis results, stored JSON)."""
    return _convert_keys(obj, to_camel)


def dict_keys_to_snake(obj: Any) -> Any:
    """Accepts either key style; risk and stacking helpers call this on every dict they receive."""
    return _convert_keys(obj, to_snake)


def money(value: Decimal | float | int | None) -> float | None:
    if value is None:
        return None
    return float(value)


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None

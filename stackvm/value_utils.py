import math
import re
from typing import Any

_SENTINEL = object()

_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# Integral values beyond this magnitude keep float notation when printed.
_INTEGRAL_PRINT_LIMIT = 1e16


def try_parse_number(token: Any) -> Any:
    """Attempt to interpret a token as a numeric literal.

    Returns `_SENTINEL` when the token is not a plain finite decimal number,
    so ``nan``, ``inf``, overflowing literals such as ``1e999`` and digit
    separators are rejected.
    """
    if isinstance(token, bool):
        return _SENTINEL
    if isinstance(token, (int, float)):
        return float(token) if math.isfinite(token) else _SENTINEL
    if not isinstance(token, str):
        return _SENTINEL

    stripped = token.strip()
    if not _NUMBER_RE.fullmatch(stripped):
        return _SENTINEL
    value = float(stripped)
    if not math.isfinite(value):
        return _SENTINEL
    return value


def is_number(token: Any) -> bool:
    return try_parse_number(token) is not _SENTINEL


def is_identifier(token: str) -> bool:
    return bool(_IDENTIFIER_RE.fullmatch(token))


def format_value(value: float) -> str:
    """Render a value the way PRINT writes it: ``10``, ``-3``, ``3.5``."""
    if math.isfinite(value) and value.is_integer() and abs(value) < _INTEGRAL_PRINT_LIMIT:
        return str(int(value))
    return repr(float(value))


__all__ = ["format_value", "is_identifier", "is_number", "try_parse_number"]

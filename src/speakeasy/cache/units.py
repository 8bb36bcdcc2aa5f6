"""Parsers for cache TTL and size budget settings."""

import re

_QUANTITY_RE = re.compile(r"^(\d+(?:\.\d+)?)([a-zA-Z]+)$")

DURATION_UNITS_MS = {
    "ms": 1,
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
    "w": 7 * 24 * 60 * 60 * 1000,
    "M": 30 * 24 * 60 * 60 * 1000,
    "y": 365 * 24 * 60 * 60 * 1000,
}

SIZE_UNITS_BYTES = {
    "b": 1,
    "kb": 1024,
    "mb": 1024 * 1024,
    "gb": 1024 * 1024 * 1024,
}


def _split(value: str, kind: str) -> tuple[float, str]:
    match = _QUANTITY_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid {kind} format: {value}")
    return float(match.group(1)), match.group(2)


def parse_ttl(ttl: str | int | float) -> int:
    """Parse a TTL like "7d", "1h" or "500ms" into milliseconds.

    Units are case sensitive because "m" (minutes) and "M" (30-day months)
    differ. Plain numbers are taken as milliseconds.

    Raises:
        ValueError: If the format or unit is not recognised
    """
    if isinstance(ttl, bool):
        raise ValueError(f"Invalid TTL format: {ttl}")
    if isinstance(ttl, (int, float)):
        if ttl < 0:
            raise ValueError(f"TTL cannot be negative: {ttl}")
        return int(ttl)

    value, unit = _split(ttl, "TTL")
    if unit not in DURATION_UNITS_MS:
        raise ValueError(
            f"Invalid TTL unit: {unit}. Use: {', '.join(DURATION_UNITS_MS)}"
        )
    return int(value * DURATION_UNITS_MS[unit])


def parse_size(size: str | int | float) -> int:
    """Parse a size budget like "100mb" or "1GB" into bytes.

    Raises:
        ValueError: If the format or unit is not recognised
    """
    if isinstance(size, bool):
        raise ValueError(f"Invalid size format: {size}")
    if isinstance(size, (int, float)):
        if size < 0:
            raise ValueError(f"Size cannot be negative: {size}")
        return int(size)

    value, unit = _split(size, "size")
    factor = SIZE_UNITS_BYTES.get(unit.lower())
    if factor is None:
        raise ValueError(
            f"Invalid size unit: {unit}. Use: {', '.join(SIZE_UNITS_BYTES)}"
        )
    return int(value * factor)

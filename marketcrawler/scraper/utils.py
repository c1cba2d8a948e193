"""Helper utilities and field patterns for market page scraping."""

import re
from datetime import datetime
from typing import Any, Optional
from urllib.parse import unquote, urlparse


# Field patterns used by the record mappers
NAME_ID_PATTERN = re.compile(r"Market_LoadOrderSpread\(\s*(\d+)\s*\)")
PRICE_HISTORY_PATTERN = re.compile(r"var\s+line1\s*=\s*(\[.*?\]);", re.DOTALL)
LISTING_ID_PATTERN = re.compile(r"listing_(\d+)")
NUMBER_PATTERN = re.compile(r"\d[\d.,\s]*(?:--)?")


def sanitize_filename(name: str, max_length: int = 255) -> str:
    """Remove invalid characters from filename and truncate.

    Args:
        name: Original filename
        max_length: Maximum filename length

    Returns:
        Sanitized filename safe for filesystem
    """
    sanitized = re.sub(r'[<>:"/\\|?*]', '', name)
    sanitized = sanitized.replace(' ', '_')
    sanitized = re.sub(r'_+', '_', sanitized)

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    sanitized = sanitized.strip('_')

    return sanitized if sanitized else 'unnamed'


def generate_export_name(prefix: str) -> str:
    """Generate a timestamped export file name.

    Returns:
        File name in format: {prefix}_YYYYMMDD_HHMMSS.json
    """
    return datetime.now().strftime(f"{sanitize_filename(prefix)}_%Y%m%d_%H%M%S.json")


def parse_listing_url(url: str) -> tuple[int, str]:
    """Extract app id and market hash name from a listing URL.

    Handles:
    - https://steamcommunity.com/market/listings/730/AK-47%20%7C%20Redline%20%28Field-Tested%29
    - https://steamcommunity.com/market/listings/570/Dragonclaw%20Hook?filter=x

    Raises:
        ValueError: If the URL is not a market listing URL
    """
    parsed = urlparse(url)
    parts = parsed.path.strip('/').split('/')

    if 'listings' in parts:
        index = parts.index('listings')
        if len(parts) > index + 2 and parts[index + 1].isdigit():
            return int(parts[index + 1]), unquote(parts[index + 2])

    raise ValueError(f"Not a market listing URL: {url}")


def parse_price(price_str: str) -> int:
    """Parse a displayed price into minor currency units.

    Handles various formats:
    - "$1,234.56 USD" → 123456
    - "1.234,56€" → 123456
    - "12,50 €" → 1250
    - "12,--€" → 1200
    - "¥ 1,234" → 123400

    Args:
        price_str: Price string from the page

    Returns:
        Price in minor units (cents)

    Raises:
        ValueError: If no price can be found
    """
    match = NUMBER_PATTERN.search(price_str or "")
    if not match:
        raise ValueError(f"No numeric value found in price string: {price_str!r}")

    cleaned = re.sub(r'\s', '', match.group()).replace('--', '00').rstrip('.,')

    last_comma = cleaned.rfind(',')
    last_dot = cleaned.rfind('.')
    decimal_sep = None
    if last_comma >= 0 and last_dot >= 0:
        decimal_sep = ',' if last_comma > last_dot else '.'
    elif last_comma >= 0 or last_dot >= 0:
        sep = ',' if last_comma >= 0 else '.'
        # a single separator followed by one or two digits is a decimal point
        if cleaned.count(sep) == 1 and len(cleaned) - cleaned.rfind(sep) - 1 in (1, 2):
            decimal_sep = sep

    if decimal_sep:
        integer, _, fraction = cleaned.rpartition(decimal_sep)
        integer = re.sub(r'[.,]', '', integer)
    else:
        integer, fraction = re.sub(r'[.,]', '', cleaned), ''

    fraction = (fraction + '00')[:2]
    return int(integer or '0') * 100 + int(fraction)


def parse_int(value: Any) -> Optional[int]:
    """Parse an integer from an int or a display string like "1,234"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    digits = re.sub(r'[^\d-]', '', str(value))
    if not digits or digits == '-':
        return None
    try:
        return int(digits)
    except ValueError:
        return None


def clean_text(value: Optional[str]) -> Optional[str]:
    """Collapse whitespace; empty strings become None."""
    if value is None:
        return None
    text = ' '.join(value.split())
    return text or None

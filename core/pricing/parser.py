import math
import re
from typing import List, Optional

from core.models import PriceToken

CURRENCY_MARKER = "R"

# Marker, optional whitespace, integer part with optional comma grouping,
# optional one or two fractional digits.
CURRENCY_PATTERN = re.compile(r"R\s?(\d{1,3}(?:,\d{3})*(?:\.\d{1,2})?)")


def normalize(raw_match: str) -> Optional[float]:
    """Convert a matched currency string into a positive float.

    Args:
        raw_match: Text such as "R1,234.50", "R 99" or "1,234.50"

    Returns:
        The numeric value, or None when the text holds no usable number
        (non-numeric, non-finite, zero or negative). A rejected token is
        simply dropped by callers; it is never an error.
    """
    if not raw_match:
        return None

    clean_price = raw_match.strip()
    if clean_price.startswith(CURRENCY_MARKER):
        clean_price = clean_price[len(CURRENCY_MARKER):]
    clean_price = clean_price.replace(",", "").strip()

    try:
        value = float(clean_price)
    except ValueError:
        return None

    if not math.isfinite(value) or value <= 0:
        return None
    return value


def find_prices(text: str, first_only: bool = False) -> List[PriceToken]:
    """Apply the currency pattern to text and return the valid tokens.

    With ``first_only`` the search stops at the first token that normalizes,
    which is how a single price element is read.
    """
    tokens = []
    if not text:
        return tokens

    for match in CURRENCY_PATTERN.finditer(text):
        value = normalize(match.group(1))
        if value is None:
            continue
        tokens.append(PriceToken(raw_match=match.group(0), value=value))
        if first_only:
            break
    return tokens

"""
Normalization helpers: price text, image URLs and pagination URLs.
"""
import math
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional
from urllib.parse import urljoin, urlparse, urlencode, parse_qsl, urlunparse

from config.config import PAKWHEELS_BASE_URL

LAKH = Decimal(100_000)
CRORE = Decimal(10_000_000)

DEFAULT_PORTS = {"http": 80, "https": 443}

# Unit words must stand alone ("12.5 lacs", "12.5lacs") and not be part of another word
_LAKH_RE = re.compile(r"(?<![a-z])(?:lacs?|lakhs?)(?![a-z])", re.IGNORECASE)
_CRORE_RE = re.compile(r"(?<![a-z])crores?(?![a-z])", re.IGNORECASE)
_DECIMAL_RE = re.compile(r"\d+(?:\.\d+)?")
_INT_RE = re.compile(r"\d+")

NEXT_PAGE_SELECTORS = [
    "link[rel=next]",
    "a[rel=next]",
    "ul.pagination li.next_page a",
    "ul.pagination li.next a",
]


def clean_text(s: Optional[str]) -> Optional[str]:
    """Collapse whitespace; empty text becomes None."""
    if not s:
        return None
    s = re.sub(r"\s+", " ", s).strip()
    return s or None


def _scaled(cleaned: str, multiplier: Decimal) -> Optional[int]:
    m = _DECIMAL_RE.search(cleaned)
    if not m:
        return None
    try:
        amount = Decimal(m.group(0)) * multiplier
    except InvalidOperation:
        return None
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def parse_price(price_text: Optional[str]) -> Optional[int]:
    """
    Parse a displayed price into an integer rupee amount.

    Handles formats like "PKR 12.5 lacs", "PKR 1.25 crore" and "PKR 12,500,000".
    Returns None for empty or unparsable text.
    """
    if not price_text:
        return None

    cleaned = re.sub(r"[^\d.,]", "", price_text).replace(",", "")

    # 1 lac = 100,000
    if _LAKH_RE.search(price_text):
        return _scaled(cleaned, LAKH)

    # 1 crore = 10,000,000
    if _CRORE_RE.search(price_text):
        return _scaled(cleaned, CRORE)

    m = _INT_RE.search(cleaned)
    return int(m.group(0)) if m else None


def parse_leading_int(value) -> Optional[int]:
    """Integer from a number or the leading digits of a string."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    m = re.match(r"\s*([+-]?\d+)", str(value))
    return int(m.group(1)) if m else None


def clean_image_url(url: Optional[str]) -> Optional[str]:
    """
    Drop query string and fragment from an image URL.

    URLs that cannot be parsed as absolute URLs are returned unchanged.
    """
    if not url:
        return None
    try:
        parsed = urlparse(url)
        host = parsed.hostname
        port = parsed.port
    except ValueError:
        return url
    if not parsed.scheme or not host:
        return url

    scheme = parsed.scheme.lower()
    origin = f"{scheme}://{host}"
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        origin = f"{origin}:{port}"
    return f"{origin}{parsed.path or '/'}"


def absolute_url(href: Optional[str], base: str = PAKWHEELS_BASE_URL) -> Optional[str]:
    if not href or not href.strip():
        return None
    return urljoin(base, href.strip())


def with_page_param(url: str, page: int) -> str:
    """Set (or replace) the ``page`` query parameter, keeping every other parameter."""
    parsed = urlparse(url)
    query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != "page"]
    query.append(("page", str(page)))
    return urlunparse(parsed._replace(query=urlencode(query)))


def find_next_page(soup, current_url: str, current_page: int) -> str:
    """
    Find the URL of the page after ``current_page``.

    Prefers the explicit "next" link of the pagination control; otherwise
    increments the ``page`` query parameter of the current URL.
    """
    if soup is not None:
        for selector in NEXT_PAGE_SELECTORS:
            link = soup.select_one(selector)
            if link is None:
                continue
            next_url = absolute_url(link.get("href"))
            if next_url:
                return next_url

    return with_page_param(current_url, current_page + 1)

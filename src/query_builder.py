"""
Search URL generation for PakWheels used-car listings.

Searches use path segments (``/used-cars/<city>/<make>-<model>/``) with
price and year bounds as query parameters. Pagination is a ``page`` query
parameter on top of that URL (see ``src.normalizers.find_next_page``).
"""
import re
from urllib.parse import urlencode

from config.config import PAKWHEELS_BASE_URL, USED_CARS_PATH
from src.models import FilterSpec


def slugify_segment(text: str) -> str:
    """Lower-case, trim and collapse internal whitespace to a single '-'."""
    if not text:
        return ""
    return re.sub(r"\s+", "-", text.strip().lower())


def build_search_url(filters: FilterSpec) -> str:
    """
    Build the first-page search URL from search filters.

    Args:
        filters: Search filters; any subset may be empty

    Returns:
        str: Absolute URL for page 1. An explicit ``start_url`` is returned verbatim.
    """
    if filters.start_url and filters.start_url.strip():
        return filters.start_url

    segments = []

    city = slugify_segment(filters.city)
    if city:
        segments.append(city)

    # A model only narrows a make; on its own it is ignored
    make = slugify_segment(filters.make)
    if make:
        model = slugify_segment(filters.model)
        segments.append(f"{make}-{model}" if model else make)

    path = "/".join([USED_CARS_PATH] + segments) + "/"

    params = []
    if filters.min_price is not None:
        params.append(("price_from", str(filters.min_price)))
    if filters.max_price is not None:
        params.append(("price_to", str(filters.max_price)))
    if filters.min_year is not None:
        params.append(("year_from", str(filters.min_year)))
    if filters.max_year is not None:
        params.append(("year_to", str(filters.max_year)))

    url = f"{PAKWHEELS_BASE_URL}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return url

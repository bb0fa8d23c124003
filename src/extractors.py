"""
Listing extraction: two independent readers of a listing node and the merge of their results.

The structured-data reader uses the JSON-LD ``Product`` block PakWheels embeds
in some listings; the markup reader walks the visible card. The merge takes
structured values first and fills the rest from markup.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from bs4 import Tag

from config.config import DEFAULT_CURRENCY
from src.models import ListingRecord, PartialRecord
from src.normalizers import (
    absolute_url,
    clean_image_url,
    clean_text,
    parse_leading_int,
    parse_price,
)

logger = logging.getLogger(__name__)

# Order of the entries in the vehicle details list of a listing card
SPEC_FIELDS = ["year", "mileage", "fuel_type", "engine_capacity", "transmission"]

# Fields JSON-LD can supply; the structured value wins when present
STRUCTURED_FIRST_FIELDS = ["title", "price", "currency", "year", "mileage", "fuel_type"]

# Fields only the visible card carries
MARKUP_ONLY_FIELDS = ["url", "engine_capacity", "transmission", "location", "image_url", "is_featured", "updated_at"]


def _node_text(node: Optional[Tag]) -> Optional[str]:
    if node is None:
        return None
    return clean_text(node.get_text(" "))


def _present(value: Any) -> bool:
    return value is not None and value != ""


class StructuredDataExtractor:
    """Reads the embedded JSON-LD offer of a listing node."""

    @staticmethod
    def _load_payload(node: Tag) -> Optional[Dict[str, Any]]:
        script = node.select_one('script[type="application/ld+json"]')
        if script is None:
            return None
        raw = script.string if script.string is not None else script.get_text()
        try:
            data = json.loads(raw or "")
        except (TypeError, ValueError):
            logger.debug("Malformed JSON-LD payload in listing node")
            return None
        if not isinstance(data, dict) or data.get("@type") != "Product":
            return None
        return data

    @staticmethod
    def _offer(data: Dict[str, Any]) -> Dict[str, Any]:
        offers = data.get("offers")
        if isinstance(offers, list):
            offers = next((o for o in offers if isinstance(o, dict)), None)
        return offers if isinstance(offers, dict) else {}

    @staticmethod
    def _brand(data: Dict[str, Any]) -> Optional[str]:
        brand = data.get("brand")
        if isinstance(brand, dict):
            return brand.get("name") or None
        return brand or None

    @classmethod
    def extract(cls, node: Tag) -> Optional[PartialRecord]:
        """
        Extract a partial record from the node's JSON-LD block.

        Returns None when the block is missing, malformed or not a Product.
        """
        data = cls._load_payload(node)
        if data is None:
            return None

        offer = cls._offer(data)
        odometer = data.get("mileageFromOdometer")
        mileage = odometer.get("value") if isinstance(odometer, dict) else None

        return PartialRecord(
            title=data.get("name") or None,
            # Structured prices are already in rupees; no lac/crore handling here
            price=parse_leading_int(offer.get("price")),
            currency=offer.get("priceCurrency") or DEFAULT_CURRENCY,
            year=parse_leading_int(data.get("modelDate")),
            mileage=mileage if _present(mileage) else None,
            fuel_type=data.get("fuelType") or None,
            brand=cls._brand(data),
        )


class MarkupExtractor:
    """Reads the visible listing card. Always returns a record; missing elements give None fields."""

    @staticmethod
    def _specs(node: Tag) -> Dict[str, Optional[str]]:
        values: List[Optional[str]] = [_node_text(li) for li in node.select("ul.search-vehicle-info-2 li")]
        return {name: values[i] if i < len(values) else None for i, name in enumerate(SPEC_FIELDS)}

    @staticmethod
    def _image(node: Tag) -> Optional[str]:
        img = node.select_one(".img-box img")
        if img is None:
            return None
        # Lazy-loaded cards keep the real source in data-original
        raw = img.get("data-original") or img.get("src") or None
        return clean_image_url(raw)

    @staticmethod
    def _is_featured(node: Tag) -> bool:
        classes = node.get("class") or []
        return "featured-listing" in classes or node.select_one(".featured-label") is not None

    @classmethod
    def extract(cls, node: Tag) -> PartialRecord:
        link = node.select_one("a.car-name.ad-detail-path")
        specs = cls._specs(node)

        return PartialRecord(
            title=_node_text(link),
            url=absolute_url(link.get("href")) if link is not None else None,
            price=parse_price(_node_text(node.select_one(".price-details"))),
            currency=DEFAULT_CURRENCY,
            year=parse_leading_int(specs["year"]),
            mileage=specs["mileage"],
            fuel_type=specs["fuel_type"],
            engine_capacity=specs["engine_capacity"],
            transmission=specs["transmission"],
            location=_node_text(node.select_one("ul.search-vehicle-info li")),
            image_url=cls._image(node),
            is_featured=cls._is_featured(node),
            updated_at=_node_text(node.select_one(".search-bottom .pull-right")),
        )


def merge_records(structured: Optional[PartialRecord], markup: PartialRecord) -> Optional[ListingRecord]:
    """
    Merge the two extractions of one listing node.

    Structured values win for the fields JSON-LD can carry; everything else
    comes from markup. Returns None when title or url is missing.
    """
    merged: Dict[str, Any] = {}

    for name in STRUCTURED_FIRST_FIELDS:
        value = getattr(structured, name) if structured is not None else None
        merged[name] = value if _present(value) else getattr(markup, name)

    for name in MARKUP_ONLY_FIELDS:
        merged[name] = getattr(markup, name)

    if not _present(merged["title"]) or not _present(merged["url"]):
        return None

    merged["currency"] = merged["currency"] or DEFAULT_CURRENCY
    merged["is_featured"] = bool(merged["is_featured"])
    return ListingRecord(**merged)


def extract_listing(node: Tag) -> Optional[ListingRecord]:
    """Run both extractors on a node and merge them."""
    return merge_records(StructuredDataExtractor.extract(node), MarkupExtractor.extract(node))

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from .errors import DecodeError, ParseError
from .utils import http_get

logger = logging.getLogger(__name__)

DATA_ENDPOINT_TEMPLATE = "https://store.ui.com/_next/data/{build_id}/us/en.json"

# The homepage references its static asset manifest under the current build id.
BUILD_ID_PATTERN = re.compile(
    r"https://assets-new\.ecomm\.ui\.com/_next/static/([a-zA-Z0-9]+)/_ssgManifest\.js"
)


def _parse_amount(value: Any) -> Optional[int]:
    """Whole minor units; anything fractional, infinite or non-numeric is rejected."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"price amount must be a number, got {value!r}")
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise ValueError(f"price amount must be a whole number of minor units, got {value!r}")
        return int(value)
    return value


@dataclass
class Variant:
    id: str
    amount: Optional[int] = None  # minor units, e.g. cents
    currency: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Variant":
        price = data.get("displayPrice")
        if not isinstance(price, dict):
            price = {}
        currency = price.get("currency")
        return cls(
            id=str(data.get("id") or ""),
            amount=_parse_amount(price.get("amount")),
            currency=str(currency) if currency is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        # missing price fields stay missing on disk
        price: Dict[str, Any] = {}
        if self.amount is not None:
            price["amount"] = self.amount
        if self.currency is not None:
            price["currency"] = self.currency
        return {"id": self.id, "displayPrice": price}


@dataclass
class Product:
    id: str
    title: str = ""
    short_description: str = ""
    slug: str = ""
    thumbnail_url: str = ""
    variants: List[Variant] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        """Build a Product from its storefront JSON; unknown keys are ignored.

        Raises ValueError/TypeError on records we cannot trust (no id,
        non-list variants, non-numeric prices).
        """
        if not isinstance(data, dict):
            raise TypeError(f"product record must be an object, got {type(data).__name__}")
        pid = data.get("id")
        if pid in (None, ""):
            raise ValueError("product record has no id")
        thumb = data.get("thumbnail") or {}
        variants = data.get("variants") or []
        if not isinstance(variants, list):
            raise TypeError("product variants must be a list")
        return cls(
            id=str(pid),
            title=str(data.get("title") or ""),
            short_description=str(data.get("shortDescription") or ""),
            slug=str(data.get("slug") or ""),
            thumbnail_url=str(thumb.get("url") or "") if isinstance(thumb, dict) else "",
            variants=[Variant.from_dict(v) for v in variants if isinstance(v, dict)],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "shortDescription": self.short_description,
            "slug": self.slug,
            "thumbnail": {"url": self.thumbnail_url},
            "variants": [v.to_dict() for v in self.variants],
        }


# ---- Endpoint resolution -----------------------------------------------------

def extract_build_id(html: str) -> str:
    match = BUILD_ID_PATTERN.search(html or "")
    if not match:
        raise ParseError("failed to extract build id from storefront homepage")
    return match.group(1)


def build_endpoint(build_id: str) -> str:
    return DATA_ENDPOINT_TEMPLATE.format(build_id=build_id)


def resolve_endpoint(session: requests.Session, home_url: str, *, timeout: float = 10.0) -> str:
    """Fetch the storefront homepage and derive the versioned data endpoint.

    Raises FetchError on transport failure or a non-200 status and
    ParseError when the page carries no build id.
    """
    resp = http_get(session, home_url, timeout=timeout)
    build_id = extract_build_id(resp.text)
    logger.info("Resolved storefront build id %s", build_id)
    return build_endpoint(build_id)


# ---- Category listings -------------------------------------------------------

def parse_products(payload: Any) -> List[Product]:
    """Flatten pageProps.subCategories[].products[] into one ordered list."""
    if not isinstance(payload, dict):
        raise DecodeError("category response is not a JSON object")
    page_props = payload.get("pageProps")
    if not isinstance(page_props, dict):
        raise DecodeError("category response has no pageProps object")
    subcategories = page_props.get("subCategories")
    if not isinstance(subcategories, list):
        raise DecodeError("pageProps.subCategories is missing or not a list")

    products: List[Product] = []
    for sub in subcategories:
        if not isinstance(sub, dict):
            raise DecodeError("subcategory entry is not an object")
        items = sub.get("products") or []
        if not isinstance(items, list):
            raise DecodeError("subcategory products is not a list")
        for item in items:
            try:
                products.append(Product.from_dict(item))
            except (TypeError, ValueError, OverflowError) as e:
                raise DecodeError(f"invalid product record: {e}") from e
    return products


def fetch_products(
    session: requests.Session,
    endpoint: str,
    category: str,
    *,
    timeout: float = 10.0,
) -> List[Product]:
    """Fetch and decode the listing for one category.

    Raises FetchError on transport failure or a non-200 status and
    DecodeError on malformed JSON.
    """
    params = {"category": category, "store": "us", "language": "en"}
    resp = http_get(session, endpoint, timeout=timeout, params=params)
    try:
        payload = resp.json()
    except ValueError as e:
        raise DecodeError(f"category {category} returned invalid JSON: {e}") from e
    products = parse_products(payload)
    logger.debug("Fetched %d products for category %s", len(products), category)
    return products


def product_url(slug: str, base_url: str = "https://store.ui.com/us/en") -> str:
    return f"{base_url.rstrip('/')}/products/{slug}"


def first_variant(product: Product) -> Optional[Variant]:
    return product.variants[0] if product.variants else None


__all__ = [
    "Product",
    "Variant",
    "BUILD_ID_PATTERN",
    "extract_build_id",
    "build_endpoint",
    "resolve_endpoint",
    "parse_products",
    "fetch_products",
    "product_url",
    "first_variant",
]

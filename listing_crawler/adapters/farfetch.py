from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from .base import RawProductRecord
from ..utils.parsing import merge_query_params


# Runs inside the page; must only read state. The listing is hydrated client-side
# into window.universal_variable some time after DOMContentLoaded.
PROBE_SCRIPT = """
() => {
    try {
        const uv = window.universal_variable;
        if (!uv || !uv.listing || !uv.listing.items) {
            return { error: 'Universal variable listing items not found', items: [], retry: true };
        }
        const items = uv.listing.items;
        if (!Array.isArray(items) || items.length === 0) {
            return { error: 'No items in listing', items: [], retry: true };
        }
        return { items: items, retry: false };
    } catch (err) {
        return { error: String(err && err.message || err), items: [], retry: false };
    }
}
"""

SORT_TOKENS = {
    "price_asc": "price-asc",
    "price_desc": "price-desc",
    "new": "new-in",
}


class FarfetchAdapter:
    """Listing pages of farfetch.com, read from ``window.universal_variable``."""

    name = "farfetch"
    domains: List[str] = ["farfetch.com", "www.farfetch.com"]
    origin = "https://www.farfetch.com"
    probe_script = PROBE_SCRIPT

    def matches(self, url: str) -> bool:
        netloc = urlparse(url).netloc.lower()
        return netloc.endswith("farfetch.com")

    def build_url(self, base_url: str, page: int = 1, filters: Optional[Dict[str, Any]] = None) -> str:
        filters = filters or {}
        params: Dict[str, str] = {}
        if filters.get("min_price"):
            params["minPrice"] = _format_number(filters["min_price"])
        if filters.get("max_price"):
            params["maxPrice"] = _format_number(filters["max_price"])
        sort_by = filters.get("sort_by")
        if sort_by and sort_by != "default":
            # Unknown values go through literally.
            params["sort"] = SORT_TOKENS.get(sort_by, sort_by)

        overrides: Dict[str, str] = {}
        if page > 1:
            overrides["page"] = str(page)
        return merge_query_params(base_url, params, overrides)

    def parse_item(self, item: Dict[str, Any]) -> RawProductRecord:
        return RawProductRecord(
            id=str(item.get("id")),
            brand=item.get("designerName"),
            title=item.get("name"),
            current_price=item.get("unitSalePrice"),
            list_price=item.get("unitPrice"),
            currency_code=item.get("currencyCode"),
            product_url=item.get("url"),
            image_url=item.get("imageUrl"),
            stock_level=item.get("stock"),
            in_stock_flag=item.get("hasStock"),
            brand_id=item.get("designerId"),
        )


def _format_number(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)

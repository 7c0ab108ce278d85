from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

from ..adapters.base import CanonicalProductRecord, RawProductRecord


def merge_query_params(
    url: str,
    params: Mapping[str, str],
    overrides: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Add ``params`` to the query of ``url`` unless the key is already present,
    then set ``overrides`` unconditionally. Existing parameter order is kept.
    """
    parts = urlparse(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    present = {k for k, _ in query}
    for key, value in params.items():
        if key not in present:
            query.append((key, value))
            present.add(key)
    for key, value in (overrides or {}).items():
        query = [(k, v) for k, v in query if k != key]
        query.append((key, value))
    return urlunparse(parts._replace(query=urlencode(query)))


def page_number_of(url: str) -> int:
    """Page number carried by a listing URL's ``page`` parameter (1 when absent or garbage)."""
    raw = dict(parse_qsl(urlparse(url).query)).get("page", "1")
    try:
        return max(1, int(raw))
    except ValueError:
        return 1


def absolute_url(url: Optional[str], origin: str) -> str:
    """
    Resolve ``url`` against the site origin; ``None``/empty gives ``""``.

    Resolution follows ``urljoin``, so a scheme-relative ``//host/x`` keeps its
    own host and becomes ``https://host/x`` rather than being glued onto the
    origin's path.
    """
    if not url:
        return ""
    if urlparse(url).scheme in ("http", "https"):
        return url
    return urljoin(origin, url)


def normalize_image_url(url: Optional[str]) -> Optional[str]:
    """
    Scheme-relative URLs get ``https:``; the query string is always dropped.
    """
    if not url:
        return None
    clean = f"https:{url}" if url.startswith("//") else url
    return clean.split("?", 1)[0]


def compute_discount(price: Optional[float], sale_price: Optional[float]) -> str:
    """Percentage label such as ``"20%"``, or ``""`` when the item is not on sale."""
    if not _on_sale(price, sale_price):
        return ""
    pct = (price - sale_price) / price * 100
    # Half-up like the site's own rounding, not banker's rounding.
    return f"{math.floor(pct + 0.5)}%"


def normalize_record(
    raw: RawProductRecord,
    origin: str,
    now: Optional[datetime] = None,
) -> CanonicalProductRecord:
    """Map a raw listing item into the canonical schema. Never raises on missing fields."""
    list_price = raw.list_price
    sale_price = raw.current_price
    if _on_sale(list_price, sale_price):
        price = sale_price
    elif list_price is None:
        price = sale_price
    else:
        price = list_price

    stamp = (now or datetime.now(timezone.utc)).isoformat()
    return CanonicalProductRecord(
        product_id=str(raw.id),
        brand=raw.brand,
        title=raw.title,
        price=price,
        original_price=list_price,
        currency=raw.currency_code,
        discount=compute_discount(list_price, sale_price),
        product_url=absolute_url(raw.product_url, origin),
        image_url=normalize_image_url(raw.image_url),
        stock_level=raw.stock_level,
        in_stock=bool(raw.in_stock_flag),
        designer_id=raw.brand_id,
        scraped_at=stamp,
    )


def _on_sale(price: Optional[float], sale_price: Optional[float]) -> bool:
    if not isinstance(price, (int, float)) or not isinstance(sale_price, (int, float)):
        return False
    return 0 < sale_price < price


def record_row(record: CanonicalProductRecord) -> Dict[str, object]:
    """Flat row with empty strings for missing values, for tabular exports."""
    return {k: ("" if v is None else v) for k, v in record.to_dict().items()}

"""
Read-only queries over a catalog snapshot.
"""

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

from shared.errors import ValidationError


Item = Mapping[str, Any]


def find_by_slug(items: Sequence[Item], slug: str) -> Optional[Item]:
    for item in items:
        if item.get("slug") == slug:
            return item
    return None


def filter_by_category(items: Sequence[Item], category: str) -> List[Item]:
    return [item for item in items if item.get("category") == category]


def filter_by_brand(items: Sequence[Item], brand: str) -> List[Item]:
    """Case-insensitive match on the item brand."""
    wanted = brand.strip().lower()
    return [item for item in items if str(item.get("brand", "")).lower() == wanted]


def search(items: Sequence[Item], query: str) -> List[Item]:
    """Case-insensitive substring match on the item title.

    A blank query matches nothing.
    """
    needle = query.strip().lower()
    if not needle:
        return []
    return [item for item in items if needle in str(item.get("title", "")).lower()]


def paginate(items: Sequence[Item], page: int = 1, per_page: int = 12) -> Dict[str, Any]:
    """Slice one page out of ``items`` with storefront pagination metadata."""
    if page < 1:
        raise ValidationError("page must be >= 1", {"page": page})
    if per_page < 1:
        raise ValidationError("per_page must be >= 1", {"per_page": per_page})

    total = len(items)
    total_pages = math.ceil(total / per_page)
    start = (page - 1) * per_page

    return {
        "products": list(items[start:start + per_page]),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total_products": total,
            "total_pages": total_pages,
            "has_next_page": page < total_pages,
            "has_prev_page": page > 1,
        },
    }

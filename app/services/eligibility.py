from typing import Iterable, List, Optional, Protocol, Sequence, TypeVar


class CatalogItem(Protocol):
    product_id: str
    category: str


ItemT = TypeVar("ItemT", bound=CatalogItem)


def get_eligible_items(
    eligible_categories: Optional[Sequence[str]],
    eligible_items: Optional[Sequence[str]],
    order_items: Iterable[ItemT],
) -> List[ItemT]:
    """
    Return the order items a promotion applies to.

    An item qualifies when its category matches one of ``eligible_categories``
    (case-insensitive) or its product id is listed in ``eligible_items`` (exact).
    The two criteria are combined with OR. Input order is preserved.
    """
    categories = {category.lower() for category in (eligible_categories or [])}
    product_ids = set(eligible_items or [])

    return [
        item for item in order_items
        if (item.category or "").lower() in categories or item.product_id in product_ids
    ]

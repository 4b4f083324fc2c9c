from typing import Any, Dict, List
from storefront.common.custom_exceptions import BusinessRejection, TransportError
from storefront.common.formatters import format_inr, format_order_date
from storefront.orders import logger
from storefront.orders.models import Order

KNOWN_STATUSES = ("confirmed", "pending", "processing", "shipped", "delivered", "cancelled")


def status_label(status: str) -> str:
    value = (status or "").lower()
    if value not in KNOWN_STATUSES:
        return "Unknown"
    return value.capitalize()


def present_order(order: Order) -> Dict[str, Any]:
    """Order as the storefront displays it: raw fields plus formatted money and dates."""
    data = order.model_dump(mode="json")
    data["status_label"] = status_label(order.status)
    data["display_total"] = format_inr(order.total)
    data["placed_on"] = format_order_date(order.created_at)
    data["estimated_delivery"] = format_order_date(order.estimated_delivery_date)
    for item, out in zip(order.items, data["items"]):
        out["display_price"] = format_inr(item.price)
    return data


async def order_history(api) -> List[Dict[str, Any]]:
    orders = await api.list_user_orders()
    logger.debug("orders.history_loaded", extra={"count": len(orders)})
    return [present_order(o) for o in orders]


async def order_detail(api, order_id: str) -> Dict[str, Any]:
    try:
        order = await api.get_order(order_id)
    except TransportError as exc:
        if exc.upstream_status == 404:
            raise BusinessRejection("Order not found", status_code=404) from exc
        raise
    return present_order(order)

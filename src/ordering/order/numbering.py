"""Order number generation.

Order numbers look like ``ORD-20260301-00042``: the placement date followed
by a five-digit sequence that restarts every day. The next sequence is the
highest one already issued for the day plus one.

Reading the last number and writing the next one is a race, so callers
must hold the day's ``order_number_key`` lock around the whole placement
Unit of Work. ``Order.order_number`` is also unique at the storage layer,
and placement is retried when a conflict still slips through.
"""

from datetime import UTC, date, datetime

from protean.utils.globals import current_domain

from ordering.order.order import Order

ORDER_NUMBER_PREFIX = "ORD"
SEQUENCE_DIGITS = 5


def day_prefix(day: date) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{day.strftime('%Y%m%d')}-"


def order_number_key(day: date) -> str:
    return f"order-number:{day.strftime('%Y%m%d')}"


def today() -> date:
    return datetime.now(UTC).date()


def parse_sequence(order_number: str) -> int:
    return int(order_number.rsplit("-", 1)[-1])


def last_sequence_for(day: date) -> int:
    """Highest sequence issued on ``day``, or 0 if none."""
    prefix = day_prefix(day)
    orders = (
        current_domain.repository_for(Order)
        ._dao.query.filter(order_number__contains=prefix)
        .order_by("-order_number")
        .limit(1)
        .all()
        .items
    )
    matching = [o.order_number for o in orders if o.order_number.startswith(prefix)]
    return parse_sequence(matching[0]) if matching else 0


def generate_order_number(day: date | None = None) -> str:
    day = day or today()
    sequence = last_sequence_for(day) + 1
    return f"{day_prefix(day)}{sequence:0{SEQUENCE_DIGITS}d}"

from datepoll.db.core import (
    check_pool,
    close_pool,
    connection,
    get_pool_stats,
    open_pool,
    transaction,
)
from datepoll.db.events import (
    Availability,
    DateOption,
    EventStore,
    parse_timestamp,
    summarize_availability,
)

__all__ = [
    "Availability",
    "DateOption",
    "EventStore",
    "check_pool",
    "close_pool",
    "connection",
    "get_pool_stats",
    "open_pool",
    "parse_timestamp",
    "summarize_availability",
    "transaction",
]

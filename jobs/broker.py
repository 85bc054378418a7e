"""
Dramatiq broker configuration.

Redis-based message broker for on-demand worker runs (e.g. triggering a
gap reconciliation from an operator shell). The periodic schedule itself
runs in-process under APScheduler; see jobs/scheduler.py.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from loguru import logger

from mintsync.config.settings import settings


def build_broker() -> RedisBroker:
    """
    Create the Redis broker.

    Uses dramatiq's default middleware stack (ShutdownNotifications,
    TimeLimit, Retries, ...). Every sync actor is declared with
    max_retries=0: a failed run is recorded in the health registry and
    the next scheduled run picks up from the stored checkpoint.
    """
    return RedisBroker(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password or None,
        db=settings.redis_db,
    )


broker = build_broker()
dramatiq.set_broker(broker)

logger.info(
    f"[Broker] Dramatiq broker ready: "
    f"redis://{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"
)

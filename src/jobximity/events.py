"""
Event publishing using Redis Streams.

Downstream services (notifications, presence, analytics) consume these
events instead of polling the API.

Events carry cell IDs and user IDs only. Raw coordinates never leave the
location store.

Stream name: "jobximity:events"
Event types: "location_updated", "match_requested", "match_responded"
"""
from typing import List, Optional, Tuple

import redis
from datetime import datetime, timezone


# Stream configuration
STREAM_NAME = "jobximity:events"
MAX_STREAM_LENGTH = 10000


def _publish(redis_client: redis.Redis, event_data: dict) -> str:
    event_data["timestamp"] = datetime.now(timezone.utc).isoformat()

    # Trimmed with MAXLEN ~, so the stream may briefly exceed the cap
    return redis_client.xadd(
        STREAM_NAME,
        event_data,
        maxlen=MAX_STREAM_LENGTH,
        approximate=True
    )


def publish_location_updated(
    redis_client: redis.Redis,
    user_id: str,
    cell_id: str,
    previous_cell_id: Optional[str] = None
) -> str:
    """
    Publish a location update to the Redis stream.

    Args:
        redis_client: Redis connection
        user_id: User whose location changed
        cell_id: New privacy cell
        previous_cell_id: Previous cell, if the user had one

    Returns:
        Event ID assigned by Redis (e.g., "1234567890123-0")
    """
    return _publish(redis_client, {
        "event_type": "location_updated",
        "user_id": user_id,
        "cell_id": cell_id,
        "previous_cell_id": previous_cell_id or "",
    })


def publish_match_requested(
    redis_client: redis.Redis,
    match_id: str,
    requester_id: str,
    target_id: str,
    status: str
) -> str:
    """
    Publish a new match request.

    Consumers filter on status: only "pending" requests should notify the target.
    """
    return _publish(redis_client, {
        "event_type": "match_requested",
        "match_id": match_id,
        "requester_id": requester_id,
        "target_id": target_id,
        "status": status,
    })


def publish_match_responded(
    redis_client: redis.Redis,
    match_id: str,
    requester_id: str,
    target_id: str,
    status: str
) -> str:
    """Publish the target's answer ("accepted" or "declined") to a match request."""
    return _publish(redis_client, {
        "event_type": "match_responded",
        "match_id": match_id,
        "requester_id": requester_id,
        "target_id": target_id,
        "status": status,
    })


def read_events(
    redis_client: redis.Redis,
    last_id: str = "0",
    count: int = 100,
    block_ms: Optional[int] = None
) -> List[Tuple[str, dict]]:
    """
    Read events published after last_id.

    "0" replays the whole retained stream, "$" waits for new events only.
    With block_ms set the call waits up to that long for something to arrive.
    """
    options = {"count": count}
    if block_ms is not None:
        options["block"] = block_ms

    streams = redis_client.xread({STREAM_NAME: last_id}, **options)
    return streams[0][1] if streams else []


def get_stream_length(redis_client: redis.Redis) -> int:
    return redis_client.xlen(STREAM_NAME)

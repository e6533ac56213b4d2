"""
Event Consumer - Listens to the Redis Stream and prints matching events.

Run this in a separate terminal while updating locations or creating match
requests to see events flow through.

Usage:
    python scripts/event_consumer.py
    python scripts/event_consumer.py --from-start   # Replay the whole stream

The consumer will print events as they arrive. Press Ctrl+C to stop.
"""
import argparse
import os
import sys
from datetime import datetime

import redis

# Add project root to path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.jobximity.events import STREAM_NAME, read_events, get_stream_length
from src.jobximity.redis_client import get_redis_client


def format_timestamp(iso_string: str) -> str:
    """Convert ISO timestamp to readable format."""
    try:
        dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
        return dt.strftime("%H:%M:%S")
    except ValueError:
        return iso_string


def short_cell(cell_id: str) -> str:
    return cell_id[:12] + "..." if cell_id else "-"


def print_event(event_id: str, event_data: dict):
    """Print an event in a readable format."""
    event_type = event_data.get("event_type", "unknown")
    timestamp = format_timestamp(event_data.get("timestamp", ""))

    if event_type == "location_updated":
        user = event_data.get("user_id", "?")
        cell = short_cell(event_data.get("cell_id", ""))
        previous = short_cell(event_data.get("previous_cell_id", ""))
        print(f"  [{timestamp}] LOCATION: user={user}, cell={cell}, previous={previous}")

    elif event_type == "match_requested":
        requester = event_data.get("requester_id", "?")
        target = event_data.get("target_id", "?")
        status = event_data.get("status", "?")
        marker = "MATCH" if status == "pending" else "OUT OF RANGE"
        print(f"  [{timestamp}] {marker}: {requester} -> {target} (status={status})")

    elif event_type == "match_responded":
        target = event_data.get("target_id", "?")
        status = event_data.get("status", "?")
        print(f"  [{timestamp}] RESPONSE: {target} {status} match {event_data.get('match_id', '?')}")

    else:
        print(f"  [{timestamp}] {event_type}: {event_data}")


def main():
    """Main consumer loop."""
    parser = argparse.ArgumentParser(description="Tail the Jobximity event stream")
    parser.add_argument("--from-start", action="store_true", help="Replay events from the start of the stream")
    args = parser.parse_args()

    print("=" * 60)
    print("JOBXIMITY - Event Consumer")
    print("=" * 60)

    r = get_redis_client()
    try:
        r.ping()
    except redis.ConnectionError as e:
        print(f"ERROR: Could not connect to Redis: {e}")
        sys.exit(1)

    stream_length = get_stream_length(r)
    print(f"Stream '{STREAM_NAME}' has {stream_length} events")
    print()
    print("Listening for events... (press Ctrl+C to stop)")
    print("-" * 60)

    # "$" starts from now, "0" replays everything
    last_id = "0" if args.from_start else "$"

    try:
        while True:
            events_list = read_events(r, last_id=last_id, count=10, block_ms=1000)

            for event_id, event_data in events_list:
                print_event(event_id, event_data)
                last_id = event_id

    except KeyboardInterrupt:
        print()
        print("-" * 60)
        print("Consumer stopped.")
        print(f"Final stream length: {get_stream_length(r)} events")


if __name__ == "__main__":
    main()

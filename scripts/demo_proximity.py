"""
Demo script to show proximity matching end to end.

Places a job giver in Midtown Manhattan and a handful of seekers at known
distances and bearings around them, then:
1. Lists who the giver can see nearby (cell index + exact verification)
2. Sends match requests from the giver to every seeker
3. Shows which requests landed as "pending" and which as "out_of_range"

Run the event_consumer.py in another terminal to see the events:
    Terminal 1: python scripts/event_consumer.py
    Terminal 2: python scripts/demo_proximity.py

Usage:
    python scripts/demo_proximity.py
    python scripts/demo_proximity.py --seekers 20   # More randomly placed seekers
"""
import argparse
import os
import random
import sys

import requests

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.jobximity.geo import GeoCoordinate, destination

# Bryant Park, NYC
GIVER_LOCATION = GeoCoordinate(40.7536, -73.9832)

# (name, distance in meters, bearing in degrees)
FIXED_SEEKERS = [
    ("seeker-same-block", 40, 90),
    ("seeker-500m", 500, 30),
    ("seeker-1.5km", 1500, 200),
    ("seeker-at-radius", 2000, 300),
    ("seeker-2.1km", 2100, 120),
    ("seeker-5km", 5000, 10),
]

API_URL = os.getenv("API_URL", "http://localhost:8000")


def put_location(user_id: str, coordinate: GeoCoordinate) -> dict:
    response = requests.put(
        f"{API_URL}/v1/users/{user_id}/location",
        json={"lat": coordinate.latitude, "lon": coordinate.longitude},
        timeout=5,
    )
    response.raise_for_status()
    return response.json()


def main():
    parser = argparse.ArgumentParser(description="Demo proximity matching")
    parser.add_argument("--seekers", type=int, default=0, help="Extra seekers placed randomly within 4km")
    parser.add_argument("--seed", type=int, default=7, help="Random seed for extra seekers")
    args = parser.parse_args()

    print("=" * 60)
    print("PROXIMITY DEMO - Cell ring + exact distance")
    print("=" * 60)

    try:
        response = requests.get(f"{API_URL}/health", timeout=5)
        if response.status_code != 200:
            print("ERROR: API not healthy")
            return
        config = requests.get(f"{API_URL}/v1/config", timeout=5).json()
    except requests.ConnectionError:
        print("ERROR: Cannot connect to API at", API_URL)
        print("Make sure to run: uvicorn src.jobximity.main:app --reload")
        return

    print(f"Resolution: {config['resolution']}  Rings: {config['ring_size']}  "
          f"Radius: {config['radius_m']:.0f}m  (ring covers {config['coverage_radius_m']:.0f}m)")
    print("-" * 60)

    giver = put_location("giver", GIVER_LOCATION)
    print(f"giver                -> cell {giver['cell_id']}")

    seekers = list(FIXED_SEEKERS)
    rng = random.Random(args.seed)
    for i in range(args.seekers):
        seekers.append((f"seeker-random-{i}", rng.uniform(0, 4000), rng.uniform(0, 360)))

    for name, meters, bearing in seekers:
        stored = put_location(name, destination(GIVER_LOCATION, bearing, meters))
        print(f"{name:<20} -> cell {stored['cell_id']}  ({meters:.0f}m @ {bearing:.0f}°)")

    print()
    nearby = requests.get(f"{API_URL}/v1/users/giver/nearby", timeout=5).json()
    print(f"Nearby users ({nearby['count']}):")
    for user in nearby["users"]:
        print(f"  {user['user_id']:<20} ~{user['approx_distance_m']}m")

    print()
    print("Match requests:")
    for name, _, _ in seekers:
        response = requests.post(
            f"{API_URL}/v1/matches",
            json={"requester_id": "giver", "target_id": name},
            timeout=5,
        )
        if response.status_code == 200:
            print(f"  giver -> {name:<20} {response.json()['status']}")
        else:
            print(f"  giver -> {name:<20} HTTP {response.status_code}: {response.json().get('detail')}")


if __name__ == "__main__":
    main()

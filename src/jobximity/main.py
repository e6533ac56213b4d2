"""
Jobximity Proximity API
FastAPI application for privacy-preserving proximity matching using the H3 hexagonal grid system.
"""
import logging
import time
from typing import Optional

from fastapi import FastAPI, Response, HTTPException, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from src.jobximity.redis_client import get_redis_client
from src.jobximity.models import (
    CoordinatePair,
    LocationOut,
    LocationUpdate,
    MatchRequestCreate,
    MatchResponse,
)
from src.jobximity.config import ProximityConfig
from src.jobximity.database import get_db_session, is_database_configured
from src.jobximity.errors import (
    DuplicateMatchRequest,
    InvalidMatchTransition,
    LocationNotFound,
    MatchNotFound,
    ProximityError,
    SelfMatchRequest,
)
from src.jobximity.geo import GeoCoordinate
from src.jobximity.proximity import ProximityResolver, distance_band
from src.jobximity import locations
from src.jobximity import matching
from src.jobximity import metrics
from src.jobximity import events


logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

# Bad tuning fails here, at startup
resolver = ProximityResolver(ProximityConfig.from_env())

# Initialize FastAPI application
app = FastAPI(
    title="Jobximity Proximity",
    description="Hyperlocal, privacy-preserving proximity matching using H3 hexagonal spatial indexing",
    version="1.0.0"
)


@app.exception_handler(ProximityError)
def proximity_error_handler(request: Request, exc: ProximityError):
    logger.info("rejected input path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(LocationNotFound)
def location_not_found_handler(request: Request, exc: LocationNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


def _open_session():
    session = get_db_session()
    if session is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    return session


@app.get("/metrics")
def get_metrics():
    """
    Prometheus metrics endpoint.

    Returns:
        Response: Prometheus-formatted metrics
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
        dict: API status, Redis connection status and whether match storage is configured
    """
    try:
        redis_client = get_redis_client()
        redis_client.ping()
        redis_status = "connected"
        metrics.redis_operations_total.labels(operation="ping", status="success").inc()
    except RedisError:
        redis_status = "disconnected"
        metrics.redis_operations_total.labels(operation="ping", status="error").inc()

    return {
        "status": "healthy",
        "redis": redis_status,
        "database": "configured" if is_database_configured() else "not_configured",
    }


@app.get("/v1/config")
def get_config():
    """Active proximity configuration (resolution, ring size, radius)."""
    return resolver.config.to_dict()


@app.put("/v1/users/{user_id}/location")
def update_location(user_id: str, update: LocationUpdate):
    """
    Store or replace a user's location.

    Process:
    1. Validate the coordinate (422 if out of range, never clamped)
    2. Convert it to the user's H3 privacy cell
    3. Write coordinate, cell and timestamp together
    4. Publish a location_updated event (cell only)

    Returns:
        dict: The user's cell and timestamp. The coordinate is not echoed.
    """
    start_time = time.time()
    coordinate = GeoCoordinate(update.lat, update.lon)
    r = get_redis_client()

    previous = locations.get_user_location(r, user_id)
    location = locations.save_user_location(r, user_id, coordinate, resolver.config.resolution)

    events.publish_location_updated(
        redis_client=r,
        user_id=user_id,
        cell_id=location.cell,
        previous_cell_id=previous.cell if previous else None
    )

    metrics.location_updates_total.labels(status="created" if previous is None else "updated").inc()
    metrics.request_duration_seconds.labels(endpoint="update_location").observe(time.time() - start_time)

    return {
        "user_id": user_id,
        "cell_id": location.cell,
        "resolution": location.resolution,
        "updated_at": location.updated_at.isoformat(),
        "created": previous is None,
    }


@app.get("/v1/users/{user_id}/location", response_model=LocationOut)
def get_location(user_id: str):
    """Get the user's stored privacy cell."""
    r = get_redis_client()
    location = locations.get_user_location(r, user_id)
    if location is None:
        raise HTTPException(status_code=404, detail=f"No location stored for user {user_id}")

    return LocationOut(
        user_id=user_id,
        cell_id=location.cell,
        resolution=location.resolution,
        updated_at=location.updated_at,
    )


@app.delete("/v1/users/{user_id}/location")
def delete_location(user_id: str):
    """Remove a user's location and drop them from the cell index."""
    r = get_redis_client()
    if not locations.delete_user_location(r, user_id):
        raise HTTPException(status_code=404, detail=f"No location stored for user {user_id}")
    return {"user_id": user_id, "deleted": True}


@app.get("/v1/users/{user_id}/nearby")
def nearby_users(user_id: str):
    """
    Find users within the matching radius.

    Uses the cell index to collect candidates from the user's search area
    (ring of hexagons), then verifies each candidate's exact distance.

    Returns:
        dict: Matching users, nearest first, each with their privacy cell and
        distance rounded up to a 100m band
    """
    start_time = time.time()
    r = get_redis_client()

    nearby = locations.find_nearby(r, resolver, user_id)

    metrics.request_duration_seconds.labels(endpoint="nearby_users").observe(time.time() - start_time)

    return {
        "user_id": user_id,
        "radius_m": resolver.config.radius_m,
        "count": len(nearby),
        "users": [
            {
                "user_id": location.owner_id,
                "cell_id": location.cell,
                "approx_distance_m": distance_band(result.distance_meters),
            }
            for location, result in nearby
        ],
    }


@app.post("/v1/proximity")
def check_proximity(pair: CoordinatePair):
    """
    Check whether two coordinates are within the matching radius.

    Both coordinates come from the caller, so the exact distance is returned.
    """
    a = GeoCoordinate(pair.lat_a, pair.lon_a)
    b = GeoCoordinate(pair.lat_b, pair.lon_b)
    result = resolver.resolve(a, b)

    metrics.proximity_checks_total.labels(
        coarse=str(result.coarse_match).lower(),
        within_radius=str(result.within_radius).lower(),
    ).inc()

    response = result.to_dict()
    response["radius_m"] = resolver.config.radius_m
    return response


@app.post("/v1/matches")
def create_match(request: MatchRequestCreate):
    """
    Request a match with another user.

    Both users must have a stored location. The request is stored as
    "pending" if they are within radius and "out_of_range" otherwise.

    Raises:
        HTTPException 400: requester and target are the same user
        HTTPException 404: either user has no stored location
        HTTPException 409: an identical request already exists
        HTTPException 503: database not configured
    """
    start_time = time.time()
    r = get_redis_client()

    requester = locations.get_user_location(r, request.requester_id)
    if requester is None:
        raise HTTPException(status_code=404, detail=f"No location stored for user {request.requester_id}")
    target = locations.get_user_location(r, request.target_id)
    if target is None:
        raise HTTPException(status_code=404, detail=f"No location stored for user {request.target_id}")

    session = _open_session()
    try:
        match, _ = matching.create_match_request(
            session, resolver, requester, target, listing_id=request.listing_id
        )
        response = match.to_dict()
    except SelfMatchRequest as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateMatchRequest as e:
        raise HTTPException(status_code=409, detail=str(e))
    finally:
        session.close()

    events.publish_match_requested(
        redis_client=r,
        match_id=response["id"],
        requester_id=response["requester_id"],
        target_id=response["target_id"],
        status=response["status"]
    )

    metrics.request_duration_seconds.labels(endpoint="create_match").observe(time.time() - start_time)
    return response


@app.post("/v1/matches/{match_id}/respond")
def respond_to_match(match_id: str, answer: MatchResponse):
    """
    Accept or decline a pending match request. Only the target may respond.
    """
    session = _open_session()
    try:
        match = matching.respond_to_match_request(session, match_id, answer.responder_id, answer.accept)
        response = match.to_dict()
    except MatchNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidMatchTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    finally:
        session.close()

    events.publish_match_responded(
        redis_client=get_redis_client(),
        match_id=response["id"],
        requester_id=response["requester_id"],
        target_id=response["target_id"],
        status=response["status"]
    )
    return response


@app.get("/v1/users/{user_id}/matches")
def incoming_matches(user_id: str, status: Optional[str] = "pending"):
    """
    Match requests addressed to a user.

    Args:
        user_id: Target user
        status: Filter by status ("pending" by default, "all" for every request)
    """
    session = _open_session()
    try:
        requests = matching.list_incoming_requests(
            session, user_id, status=None if status == "all" else status
        )
        return {
            "user_id": user_id,
            "count": len(requests),
            "matches": [m.to_dict() for m in requests],
        }
    finally:
        session.close()

"""
Match request workflow.

Every match request passes through the proximity resolver before it is
stored. The resolver's answer picks the initial status; the stored record
keeps only user IDs and timestamps, never locations or distances.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.jobximity import metrics
from src.jobximity.database import (
    MatchRequest,
    MATCH_STATUS_PENDING,
    MATCH_STATUS_ACCEPTED,
    MATCH_STATUS_DECLINED,
    MATCH_STATUS_OUT_OF_RANGE,
)
from src.jobximity.errors import (
    DuplicateMatchRequest,
    InvalidMatchTransition,
    MatchNotFound,
    SelfMatchRequest,
)
from src.jobximity.proximity import ProximityResolver, ProximityResult, UserLocation

logger = logging.getLogger(__name__)


def find_match_request(
    session: Session,
    requester_id: str,
    target_id: str,
    listing_id: Optional[str] = None,
) -> Optional[MatchRequest]:
    query = session.query(MatchRequest).filter(
        MatchRequest.requester_id == requester_id,
        MatchRequest.target_id == target_id,
    )
    if listing_id is None:
        query = query.filter(MatchRequest.listing_id.is_(None))
    else:
        query = query.filter(MatchRequest.listing_id == listing_id)
    return query.first()


def create_match_request(
    session: Session,
    resolver: ProximityResolver,
    requester: UserLocation,
    target: UserLocation,
    listing_id: Optional[str] = None,
) -> Tuple[MatchRequest, ProximityResult]:
    """
    Store a match request with status decided by proximity.

    Args:
        session: SQLAlchemy session
        resolver: Proximity resolver for the active config
        requester: Requester's stored location
        target: Target's stored location
        listing_id: Optional listing the request is about

    Returns:
        Tuple of (stored MatchRequest, ProximityResult)
        - status is "pending" when within radius, "out_of_range" otherwise

    Raises:
        SelfMatchRequest: requester and target are the same user
        DuplicateMatchRequest: same requester/target/listing already exists
    """
    if requester.owner_id == target.owner_id:
        raise SelfMatchRequest("cannot request a match with yourself")

    if find_match_request(session, requester.owner_id, target.owner_id, listing_id) is not None:
        raise DuplicateMatchRequest(
            f"match request from {requester.owner_id} to {target.owner_id} already exists"
        )

    result = resolver.is_within_proximity(requester, target)
    metrics.proximity_checks_total.labels(
        coarse=str(result.coarse_match).lower(),
        within_radius=str(result.within_radius).lower(),
    ).inc()

    now = datetime.now(timezone.utc)
    match = MatchRequest(
        requester_id=requester.owner_id,
        target_id=target.owner_id,
        listing_id=listing_id,
        status=MATCH_STATUS_PENDING if result.within_radius else MATCH_STATUS_OUT_OF_RANGE,
        requested_at=now,
        was_in_range_at_request=now if result.within_radius else None,
    )

    try:
        session.add(match)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise DuplicateMatchRequest(
            f"match request from {requester.owner_id} to {target.owner_id} already exists"
        ) from None

    metrics.match_requests_total.labels(status=match.status).inc()
    logger.info(
        "match request id=%s requester=%s target=%s status=%s",
        match.id,
        match.requester_id,
        match.target_id,
        match.status,
    )
    return match, result


def respond_to_match_request(
    session: Session,
    match_id: str,
    responder_id: str,
    accept: bool,
) -> MatchRequest:
    """
    Accept or decline a pending match request.

    Raises:
        MatchNotFound: no request with match_id
        InvalidMatchTransition: responder is not the target, or the request
            is no longer pending
    """
    match = session.get(MatchRequest, match_id)
    if match is None:
        raise MatchNotFound(f"match request {match_id} not found")
    if match.target_id != responder_id:
        raise InvalidMatchTransition("only the target of a match request can respond")
    if match.status != MATCH_STATUS_PENDING:
        raise InvalidMatchTransition(f"match request is {match.status}, not pending")

    match.status = MATCH_STATUS_ACCEPTED if accept else MATCH_STATUS_DECLINED
    match.responded_at = datetime.now(timezone.utc)
    session.commit()

    metrics.match_requests_total.labels(status=match.status).inc()
    logger.info("match request id=%s responded status=%s", match.id, match.status)
    return match


def list_incoming_requests(
    session: Session,
    target_id: str,
    status: Optional[str] = MATCH_STATUS_PENDING,
) -> List[MatchRequest]:
    """Requests addressed to target_id, newest first. status=None returns all."""
    query = session.query(MatchRequest).filter(MatchRequest.target_id == target_id)
    if status is not None:
        query = query.filter(MatchRequest.status == status)
    return query.order_by(MatchRequest.requested_at.desc()).all()

"""Seating API routes."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ...core import AssignmentOptions, SeatingCoordinator, SeatingResult, SeatingStatus
from ...errors import ErrorCode, SeatingRejected
from ...models import TableState, utcnow
from ...services.suggestions import SuggestionService
from ..deps import get_coordinator, get_suggestion_service

router = APIRouter(prefix="/seating", tags=["seating"])

NOT_FOUND_CODES = {ErrorCode.TABLE_NOT_FOUND}


class OptionsRequest(BaseModel):
    """Schema for selection options."""

    exclude_servers: List[int] = []
    urgent_party: bool = False
    table_preference: Optional[int] = None

    def to_options(self) -> AssignmentOptions:
        return AssignmentOptions(
            exclude_servers=list(self.exclude_servers),
            urgent_party=self.urgent_party,
            table_preference=self.table_preference,
        )


class WaitlistSeatRequest(BaseModel):
    """Schema for seating a waitlisted party."""

    requested_by: int
    options: OptionsRequest = OptionsRequest()


class ManualSeatRequest(BaseModel):
    """Schema for seating a walk-in at a chosen table."""

    party_size: int = Field(ge=1, le=20)
    requested_by: int


class ReleaseRequest(BaseModel):
    """Schema for releasing a table."""

    requested_by: int


class TableStateRequest(BaseModel):
    """Schema for moving a table to a new state."""

    state: TableState
    requested_by: int
    party_size: Optional[int] = Field(default=None, ge=1, le=20)


class SeatingResponse(BaseModel):
    """Schema for a successful seating or release."""

    success: bool
    status: str
    assignment: Optional[Dict[str, Any]] = None
    updated_table: Optional[Dict[str, Any]] = None
    updated_party: Optional[Dict[str, Any]] = None


class FairnessResponse(BaseModel):
    """Schema for the fairness matrix."""

    matrix: List[List[int]]
    buckets: List[str]
    servers: List[Dict[str, Any]]
    server_index: Dict[str, int]
    totals: List[int]
    fairness_score: int


def _respond(result: SeatingResult) -> SeatingResponse:
    """Translate a seating result into a response or an HTTP error."""
    if result.status == SeatingStatus.CONFLICT:
        raise HTTPException(status_code=409, detail=result.to_dict())
    if result.status == SeatingStatus.REJECTED:
        status_code = 404 if result.code in NOT_FOUND_CODES else 400
        raise HTTPException(status_code=status_code, detail=result.to_dict())
    return SeatingResponse(**result.to_dict())


@router.get("/assignment")
async def find_assignment(
    party_size: int = Query(ge=1, le=20),
    urgent_party: bool = False,
    table_preference: Optional[int] = None,
    exclude_servers: List[int] = Query(default=[]),
    seating: SeatingCoordinator = Depends(get_coordinator),
):
    """Preview the best table and server for a party without seating it."""
    options = AssignmentOptions(
        exclude_servers=exclude_servers,
        urgent_party=urgent_party,
        table_preference=table_preference,
    )
    try:
        assignment = await seating.find_assignment(party_size, options)
    except SeatingRejected as e:
        raise HTTPException(status_code=400, detail=e.message)

    return {"assignment": assignment.to_dict() if assignment else None}


@router.get("/fairness", response_model=FairnessResponse)
async def get_fairness_matrix(seating: SeatingCoordinator = Depends(get_coordinator)):
    """Get today's fairness matrix."""
    matrix = await seating.get_fairness_matrix()
    return FairnessResponse(**matrix.to_dict())


@router.get("/suggestions")
async def get_suggestions(
    limit: Optional[int] = Query(default=None, ge=1, le=20),
    service: SuggestionService = Depends(get_suggestion_service),
):
    """Get suggested seatings for the head of the waitlist."""
    suggestions = await service.generate_suggestions(limit)
    return {
        "suggestions": [s.to_dict() for s in suggestions],
        "count": len(suggestions),
        "generated_at": utcnow().isoformat(),
    }


@router.post("/waitlist/{party_id}/seat", response_model=SeatingResponse)
async def seat_from_waitlist(
    party_id: int,
    request: WaitlistSeatRequest,
    seating: SeatingCoordinator = Depends(get_coordinator),
):
    """Seat a waitlisted party at the best available table."""
    result = await seating.seat_from_waitlist(
        party_id, request.requested_by, request.options.to_options()
    )
    return _respond(result)


@router.post("/tables/{table_id}/seat", response_model=SeatingResponse)
async def seat_manually(
    table_id: int,
    request: ManualSeatRequest,
    seating: SeatingCoordinator = Depends(get_coordinator),
):
    """Seat a walk-in party at a specific table."""
    result = await seating.seat_manually(table_id, request.party_size, request.requested_by)
    return _respond(result)


@router.post("/tables/{table_id}/release", response_model=SeatingResponse)
async def release_table(
    table_id: int,
    request: ReleaseRequest,
    seating: SeatingCoordinator = Depends(get_coordinator),
):
    """Return a table to available."""
    result = await seating.release_table(table_id, request.requested_by)
    return _respond(result)


@router.put("/tables/{table_id}/state", response_model=SeatingResponse)
async def update_table_state(
    table_id: int,
    request: TableStateRequest,
    seating: SeatingCoordinator = Depends(get_coordinator),
):
    """Move a table to a new state; occupying it needs a party size."""
    result = await seating.advance_table(
        table_id, request.state, request.requested_by, request.party_size
    )
    return _respond(result)

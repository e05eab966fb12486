"""Manual bump API routes."""
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from bumpdispatch.core.database import get_db
from bumpdispatch.services.bump_service import BumpService, BumpCooldownError
from bumpdispatch.services.listing_service import ListingNotFoundError
from bumpdispatch.utils.time import utc_now

router = APIRouter(prefix="/api/listings", tags=["bumps"])


class BumpRequest(BaseModel):
    """Request to bump a listing."""
    user_id: str
    source: str = "website"


class BumpResponse(BaseModel):
    """Accepted bump."""
    bump_id: str
    listing_id: str
    bumped_at: str
    next_bump_at: str
    message: str


class BumpStatusResponse(BaseModel):
    """Cooldown state for a user and listing."""
    can_bump: bool
    remaining_seconds: int
    next_bump_at: Optional[str] = None


@router.post("/{listing_id}/bump", response_model=BumpResponse)
async def bump_listing(
    listing_id: str,
    request: BumpRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Bump a listing to the top.

    Returns 429 with the remaining wait while the cooldown is running.
    """
    if request.source not in ("website", "discord"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="source must be 'website' or 'discord'"
        )

    try:
        result = await BumpService.manual_bump(db, listing_id, request.user_id, utc_now(), request.source)
    except ListingNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except BumpCooldownError as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(e),
            headers={"Retry-After": str(max(1, int(e.remaining.total_seconds())))}
        )

    return {
        "bump_id": str(result.bump.id),
        "listing_id": listing_id,
        "bumped_at": result.bump.bumped_at.isoformat(),
        "next_bump_at": result.next_bump_at.isoformat(),
        "message": result.message
    }


@router.get("/{listing_id}/bump-status", response_model=BumpStatusResponse)
async def get_bump_status(
    listing_id: str,
    user_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Whether the user may bump the listing now, and when they next can."""
    try:
        bump_status = await BumpService.get_bump_status(db, listing_id, user_id, utc_now())
    except ListingNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return {
        "can_bump": bump_status.can_bump,
        "remaining_seconds": max(0, int(bump_status.remaining.total_seconds())),
        "next_bump_at": bump_status.next_bump_at.isoformat() if bump_status.next_bump_at else None
    }

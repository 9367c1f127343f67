from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from loguru import logger

from recommender.api.deps import get_access_token, get_caller_id, get_recommendation_service, to_http_exception
from recommender.core.exceptions import RecommendationError
from recommender.models.recommendation import RecommendationRequest, RecommendationResponse
from recommender.services.recommendation_service import RecommendationService

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


@router.post("", response_model=RecommendationResponse)
async def get_recommendations(
    payload: RecommendationRequest,
    response: Response,
    caller_id: str = Depends(get_caller_id),
    access_token: str | None = Depends(get_access_token),
    service: RecommendationService = Depends(get_recommendation_service),
) -> RecommendationResponse:
    """
    Ranked session recommendations for the authenticated attendee.
    Served from cache within the freshness window unless `forceRefresh` is set.
    """
    try:
        result = await service.get_recommendations(
            caller_id, access_token, str(payload.conferenceId), force_refresh=payload.forceRefresh
        )
        response.headers["X-RateLimit-Remaining"] = str(service.rate_limiter.remaining(caller_id))
        return result
    except RecommendationError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error computing recommendations for {payload.conferenceId}: {e}")
        raise HTTPException(status_code=500, detail="Failed to compute recommendations")


@router.delete("/{conference_id}", status_code=204)
async def invalidate_recommendations(
    conference_id: UUID,
    caller_id: str = Depends(get_caller_id),
    access_token: str | None = Depends(get_access_token),
    service: RecommendationService = Depends(get_recommendation_service),
) -> None:
    """Drop the caller's cached recommendations so the next request recomputes."""
    try:
        await service.invalidate(caller_id, access_token, str(conference_id))
    except RecommendationError as e:
        raise to_http_exception(e)

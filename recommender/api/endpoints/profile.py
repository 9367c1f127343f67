from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from recommender.api.deps import get_access_token, get_caller_id, get_recommendation_service, to_http_exception
from recommender.core.exceptions import RecommendationError
from recommender.models.recommendation import InterestsRequest
from recommender.services.recommendation_service import RecommendationService

router = APIRouter(prefix="/profile", tags=["profile"])


@router.put("/interests")
async def update_interests(
    payload: InterestsRequest,
    caller_id: str = Depends(get_caller_id),
    access_token: str | None = Depends(get_access_token),
    service: RecommendationService = Depends(get_recommendation_service),
) -> dict[str, list[str]]:
    """Replace interest tags; the interest embedding is regenerated on the next ranking run."""
    try:
        interests = await service.update_interests(caller_id, access_token, payload.interests)
    except RecommendationError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Error updating interests: {e}")
        raise HTTPException(status_code=500, detail="Failed to update interests")
    return {"interests": interests}

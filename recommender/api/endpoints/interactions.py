from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from recommender.api.deps import get_access_token, get_caller_id, get_recommendation_service, to_http_exception
from recommender.core.exceptions import RecommendationError
from recommender.models.recommendation import InteractionRequest
from recommender.services.recommendation_service import RecommendationService

router = APIRouter(prefix="/interactions", tags=["interactions"])


@router.post("", status_code=201)
async def track_interaction(
    payload: InteractionRequest,
    caller_id: str = Depends(get_caller_id),
    access_token: str | None = Depends(get_access_token),
    service: RecommendationService = Depends(get_recommendation_service),
) -> dict[str, str]:
    try:
        await service.record_interaction(
            caller_id,
            access_token,
            str(payload.conferenceId),
            str(payload.sessionId),
            payload.interactionType,
            rating=payload.rating,
            duration_seconds=payload.durationSeconds,
        )
    except RecommendationError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"Error recording interaction on {payload.sessionId}: {e}")
        raise HTTPException(status_code=500, detail="Failed to record interaction")
    return {"status": "recorded"}

from fastapi import Header, HTTPException, Request, status

from recommender.core.config import settings
from recommender.core.exceptions import RateLimited, RecommendationError
from recommender.core.security import parse_bearer_token
from recommender.services.recommendation_service import RecommendationService


def get_recommendation_service(request: Request) -> RecommendationService:
    service = getattr(request.app.state, "recommendation_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Recommendation service is initializing.",
        )
    return service


def get_access_token(authorization: str | None = Header(default=None)) -> str | None:
    # Missing or malformed headers are rejected by the service after rate limiting
    return parse_bearer_token(authorization)


def trusted_proxies() -> set[str]:
    return {p.strip() for p in settings.RATE_LIMIT_TRUSTED_PROXIES.split(",") if p.strip()}


def get_caller_id(request: Request) -> str:
    """
    Identity used for rate limiting.

    X-Forwarded-For is only read when the peer is a trusted proxy. The caller is then
    the nearest hop that is not itself a trusted proxy; anything further left was
    written by the client and can be spoofed.
    """
    peer = request.client.host if request.client else "unknown"
    proxies = trusted_proxies()
    if peer not in proxies:
        return peer

    forwarded = request.headers.get("x-forwarded-for", "")
    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in proxies:
            return hop
    return peer


def to_http_exception(exc: RecommendationError) -> HTTPException:
    headers = None
    if isinstance(exc, RateLimited) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return HTTPException(status_code=exc.status, detail=str(exc), headers=headers)

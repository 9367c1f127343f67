class RecommendationError(Exception):
    """Base for rejections surfaced to callers. Carries the HTTP mapping."""

    code: str = "recommendation_error"
    status: int = 400

    def __init__(self, message: str = "", *, code: str | None = None, status: int | None = None):
        super().__init__(message or self.__class__.__name__)
        if code:
            self.code = code
        if status:
            self.status = status


class RateLimited(RecommendationError):
    code = "rate_limited"
    status = 429

    def __init__(self, message: str = "Too many requests", *, retry_after: int | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class Unauthenticated(RecommendationError):
    code = "unauthenticated"
    status = 401


class Forbidden(RecommendationError):
    code = "forbidden"
    status = 403


class ProviderUnavailable(Exception):
    """An embedding or explanation provider cannot serve the call."""

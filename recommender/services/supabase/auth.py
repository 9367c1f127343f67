import httpx
from loguru import logger

from recommender.core.security import redact_token
from recommender.services.store import IdentityResolver
from recommender.services.supabase.client import SupabaseClient


class SupabaseAuthService(IdentityResolver):
    """
    Resolves bearer credentials to user ids through Supabase Auth.
    """

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def get_user_id(self, access_token: str) -> str | None:
        """
        Return the user id behind `access_token`, or None if the token is not accepted.
        Transport errors propagate.
        """
        try:
            data = await self.client.get_auth_user(access_token)
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (401, 403):
                logger.info(f"Rejected bearer token {redact_token(access_token)}")
                return None
            raise

        user_id = (data or {}).get("id")
        if not user_id:
            logger.warning(f"Auth user response missing id for token {redact_token(access_token)}")
            return None
        return str(user_id)

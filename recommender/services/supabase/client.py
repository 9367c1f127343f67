from typing import Any

from recommender.core.base_client import BaseClient
from recommender.core.config import settings
from recommender.core.version import __version__


class SupabaseClient(BaseClient):
    """
    Client for the Supabase REST (PostgREST) and Auth APIs, authorized with the service key.
    """

    def __init__(
        self,
        url: str = settings.SUPABASE_URL,
        service_key: str | None = settings.SUPABASE_SERVICE_KEY,
        timeout: float = 10.0,
        max_retries: int = 3,
    ):
        headers = {
            "User-Agent": f"SessionRecommender/{__version__}",
            "Accept": "application/json",
        }
        if service_key:
            headers["apikey"] = service_key
            headers["Authorization"] = f"Bearer {service_key}"
        super().__init__(base_url=url.rstrip("/"), timeout=timeout, max_retries=max_retries, headers=headers)
        self.service_key = service_key

    @staticmethod
    def _table(table: str) -> str:
        return f"/rest/v1/{table}"

    async def select(self, table: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        data = await self.get(self._table(table), params=params)
        return data or []

    async def insert(self, table: str, rows: list[dict[str, Any]] | dict[str, Any]) -> None:
        await self.post(self._table(table), json=rows, headers={"Prefer": "return=minimal"})

    async def upsert(self, table: str, rows: list[dict[str, Any]] | dict[str, Any], on_conflict: str) -> None:
        await self.post(
            self._table(table),
            json=rows,
            params={"on_conflict": on_conflict},
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    async def update(self, table: str, filters: dict[str, Any], values: dict[str, Any]) -> None:
        await self.patch(self._table(table), json=values, params=filters, headers={"Prefer": "return=minimal"})

    async def remove(self, table: str, filters: dict[str, Any]) -> None:
        await self.delete(self._table(table), params=filters, headers={"Prefer": "return=minimal"})

    async def get_auth_user(self, access_token: str) -> dict[str, Any]:
        """Resolve an end-user JWT to its auth user record."""
        return await self.get(
            "/auth/v1/user",
            headers={"Authorization": f"Bearer {access_token}"},
            max_tries=1,
        )


def eq(value: Any) -> str:
    """PostgREST equality filter."""
    return f"eq.{value}"

import json
from datetime import datetime
from typing import Any

from loguru import logger

from recommender.models.session import Interaction, Session, SubjectHistory, SubjectProfile, Track
from recommender.services.store import ConferenceStore
from recommender.services.supabase.client import SupabaseClient, eq

SESSION_COLUMNS = (
    "id,title,description,start_time,end_time,session_type,is_featured,topics,difficulty,embedding,"
    "track:tracks(id,name,color),room:rooms(name)"
)
PROFILE_COLUMNS = "id,interests,job_title,company,interest_embedding,embedding_updated_at"


def parse_vector(value: Any) -> list[float] | None:
    """pgvector columns come back as '[0.1,0.2,...]' strings through PostgREST."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return None
    if not isinstance(value, list) or not value:
        return None
    try:
        return [float(v) for v in value]
    except (TypeError, ValueError):
        return None


def session_from_row(row: dict[str, Any]) -> Session:
    track = row.get("track")
    room = row.get("room") or {}
    return Session(
        id=str(row["id"]),
        title=row.get("title") or "",
        description=row.get("description") or "",
        start_time=row["start_time"],
        end_time=row.get("end_time"),
        room=room.get("name") if isinstance(room, dict) else None,
        track=Track(id=str(track["id"]), name=track.get("name") or "", color=track.get("color")) if track else None,
        session_type=row.get("session_type"),
        is_featured=bool(row.get("is_featured")),
        topics=row.get("topics") or [],
        difficulty=row.get("difficulty"),
        embedding=parse_vector(row.get("embedding")),
    )


def profile_from_row(row: dict[str, Any]) -> SubjectProfile:
    return SubjectProfile(
        id=str(row["id"]),
        interests=row.get("interests") or [],
        title=row.get("job_title"),
        company=row.get("company"),
        interest_embedding=parse_vector(row.get("interest_embedding")),
        embedding_updated_at=row.get("embedding_updated_at"),
    )


class SupabaseConferenceStore(ConferenceStore):
    """ConferenceStore backed by the Supabase Postgres schema."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def get_upcoming_sessions(self, conference_id: str, now: datetime) -> list[Session]:
        rows = await self.client.select(
            "sessions",
            {
                "select": SESSION_COLUMNS,
                "conference_id": eq(conference_id),
                "start_time": f"gte.{now.isoformat()}",
                "order": "start_time.asc",
            },
        )
        sessions = []
        for row in rows:
            try:
                sessions.append(session_from_row(row))
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed session row {row.get('id')}: {e}")
        return sessions

    async def get_profile(self, user_id: str) -> SubjectProfile | None:
        rows = await self.client.select("profiles", {"select": PROFILE_COLUMNS, "id": eq(user_id), "limit": 1})
        return profile_from_row(rows[0]) if rows else None

    async def get_history(self, user_id: str) -> SubjectHistory:
        interaction_rows = await self.client.select(
            "session_interactions",
            {
                "select": "session_id,interaction_type,rating,created_at,session:sessions(track_id)",
                "user_id": eq(user_id),
            },
        )
        saved_rows = await self.client.select("saved_sessions", {"select": "session_id", "user_id": eq(user_id)})

        interactions = []
        for row in interaction_rows:
            session = row.get("session") or {}
            interactions.append(
                Interaction(
                    session_id=str(row["session_id"]),
                    interaction_type=row.get("interaction_type") or "viewed",
                    track_id=str(session["track_id"]) if session.get("track_id") else None,
                    rating=row.get("rating"),
                    created_at=row.get("created_at"),
                )
            )
        return SubjectHistory(
            interactions=interactions,
            saved_session_ids={str(r["session_id"]) for r in saved_rows if r.get("session_id")},
        )

    async def is_member(self, user_id: str, conference_id: str) -> bool:
        rows = await self.client.select(
            "conference_members",
            {"select": "user_id", "conference_id": eq(conference_id), "user_id": eq(user_id), "limit": 1},
        )
        return bool(rows)

    async def save_profile_embedding(self, user_id: str, embedding: list[float], updated_at: datetime) -> None:
        await self.client.update(
            "profiles",
            {"id": eq(user_id)},
            {"interest_embedding": embedding, "embedding_updated_at": updated_at.isoformat()},
        )

    async def record_interaction(
        self,
        user_id: str,
        session_id: str,
        interaction_type: str,
        rating: int | None = None,
        duration_seconds: int | None = None,
    ) -> None:
        await self.client.upsert(
            "session_interactions",
            {
                "user_id": user_id,
                "session_id": session_id,
                "interaction_type": interaction_type,
                "rating": rating,
                "duration_seconds": duration_seconds,
            },
            on_conflict="user_id,session_id,interaction_type",
        )

    async def update_interests(self, user_id: str, interests: list[str]) -> None:
        await self.client.update(
            "profiles",
            {"id": eq(user_id)},
            {"interests": interests, "interest_embedding": None, "embedding_updated_at": None},
        )

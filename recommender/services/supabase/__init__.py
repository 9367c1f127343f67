from recommender.services.supabase.auth import SupabaseAuthService
from recommender.services.supabase.client import SupabaseClient
from recommender.services.supabase.store import SupabaseConferenceStore

__all__ = ["SupabaseAuthService", "SupabaseClient", "SupabaseConferenceStore"]

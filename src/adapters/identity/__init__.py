"""Identity provider adapters."""

from .supabase_provider import SupabaseIdentityProvider

__all__ = ["SupabaseIdentityProvider"]

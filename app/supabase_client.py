import os
import logging
from supabase import create_client, Client
from dotenv import load_dotenv
from jose import jwt, JWTError
from typing import Optional

load_dotenv()

logger = logging.getLogger(__name__)

SUPABASE_URL = os.environ.get("SUPABASE_URL") or os.environ.get("NEXT_PUBLIC_SUPABASE_URL")
SUPABASE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")  # Service role: storage + upserts bypass RLS
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY") or os.environ.get("NEXT_PUBLIC_SUPABASE_ANON_KEY")

# Supabase signs access tokens with the project JWT secret
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"

supabase: Client | None = None

if not SUPABASE_URL:
    logger.warning("SUPABASE_URL not set. Supabase features will be disabled.")
else:
    key_to_use = SUPABASE_KEY or SUPABASE_ANON_KEY
    if key_to_use:
        try:
            supabase = create_client(SUPABASE_URL, key_to_use)
        except Exception as e:
            logger.warning(f"Could not create Supabase client: {e}")
    else:
        logger.warning("No Supabase key found. Supabase features will be disabled.")


def get_supabase() -> Client | None:
    """Get the Supabase client instance."""
    return supabase


def verify_supabase_token(token: str) -> Optional[dict]:
    """
    Verify a Supabase access token against the project's JWT secret.
    Returns the user claims, or None when the signature, audience or expiry
    check fails or the token has no subject.
    """
    if not token:
        return None

    jwt_secret = os.environ.get("SUPABASE_JWT_SECRET")
    if not jwt_secret:
        logger.error("[Auth] SUPABASE_JWT_SECRET not set. Rejecting all tokens.")
        return None

    try:
        decoded = jwt.decode(
            token,
            jwt_secret,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
        )
    except JWTError as decode_error:
        logger.warning(f"[Auth] JWT verification failed: {decode_error}")
        return None

    user_id = decoded.get("sub")
    if not user_id:
        logger.warning("[Auth] No user_id (sub) in decoded token")
        return None

    return {
        "id": user_id,
        "email": decoded.get("email"),
        "role": decoded.get("role", "authenticated"),
    }


def get_user_profile(user_id: str) -> dict | None:
    """Get user profile from Supabase."""
    if not supabase:
        return None

    try:
        response = supabase.table("profiles").select("*").eq("id", user_id).single().execute()
        return response.data
    except Exception as e:
        logger.error(f"Error fetching profile: {e}")
        return None

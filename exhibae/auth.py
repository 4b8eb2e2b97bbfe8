import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from jose import jwt as jose_jwt
from sqlalchemy.orm import Session

from .config import JWT_ALGORITHM, JWT_AUDIENCE, SUPABASE_JWT_SECRET
from .database import get_db
from .models import Profile

logger = logging.getLogger(__name__)

security = HTTPBearer()

VALID_ROLES = {"organiser", "brand", "shopper", "manager"}


def decode_access_token(token: str) -> dict:
    """Verify an auth-provider access token and return its claims"""
    token_parts = token.split(".")
    if len(token_parts) != 3:
        logger.warning(f"⚠️ Malformed token received: {len(token_parts)} parts")
        raise HTTPException(status_code=401, detail="Invalid token format. Expected a valid JWT token.")

    try:
        return jose_jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
        )
    except JWTError as e:
        logger.warning(f"⚠️ Token verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e


def resolve_profile(db: Session, claims: dict) -> Profile:
    """Load the profile for verified claims, creating it on first sign-in"""
    user_id = claims.get("sub")
    if not user_id:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if profile:
        return profile

    email = claims.get("email")
    if not email:
        raise HTTPException(status_code=401, detail="Profile not found")

    metadata = claims.get("user_metadata") or {}
    role = metadata.get("role", "brand")
    if role not in VALID_ROLES or role == "manager":
        # Managers are provisioned by an administrator, never self-assigned
        role = "brand"

    profile = Profile(
        id=user_id,
        email=email,
        full_name=metadata.get("full_name"),
        company_name=metadata.get("company_name"),
        role=role,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    logger.info(f"✅ Created profile {profile.id} with role {role}")
    return profile


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Profile:
    """Get current user profile from the bearer token"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    claims = decode_access_token(credentials.credentials)
    return resolve_profile(db, claims)


def authenticate_token(db: Session, token: Optional[str]) -> Optional[Profile]:
    """Token check for WebSocket handshakes, which cannot send an Authorization header"""
    if not token:
        return None
    try:
        claims = decode_access_token(token)
        return resolve_profile(db, claims)
    except HTTPException:
        return None

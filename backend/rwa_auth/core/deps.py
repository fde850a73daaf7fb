from functools import lru_cache
from typing import Optional
from datetime import timedelta
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from rwa_auth.config import settings
from rwa_auth.core.challenge import ChallengeIssuer
from rwa_auth.core.errors import RoleNotAuthorized
from rwa_auth.core.nonce_store import InMemoryNonceStore, NonceStore, RedisNonceStore
from rwa_auth.core.security import SessionIssuer
from rwa_auth.database import get_db
from rwa_auth.models.role import Role
from rwa_auth.services.auth_service import AuthService, Identity
from rwa_auth.services.session_ledger import SessionLedger

bearer = HTTPBearer()

def build_nonce_store() -> NonceStore:
    issuer = ChallengeIssuer(settings.APP_NAME, ttl_seconds=settings.CHALLENGE_TTL_SECONDS)
    if settings.REDIS_URL:
        return RedisNonceStore(issuer, retention_seconds=settings.CHALLENGE_RETENTION_SECONDS)
    return InMemoryNonceStore(issuer, retention_seconds=settings.CHALLENGE_RETENTION_SECONDS)

@lru_cache
def get_auth_service() -> AuthService:
    sessions = SessionIssuer(
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )
    return AuthService(build_nonce_store(), sessions, approved_admins=settings.approved_admins)

async def get_session_ledger(db: AsyncSession = Depends(get_db)) -> Optional[SessionLedger]:
    if not settings.TRACK_SESSIONS:
        return None
    return SessionLedger(db)

async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(bearer),
    auth: AuthService = Depends(get_auth_service),
) -> Identity:
    # InvalidToken / TokenExpired are rendered by the AuthError handler
    return auth.authenticate(credentials.credentials)

async def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role != Role.ADMIN:
        raise RoleNotAuthorized("Admin only")
    return identity

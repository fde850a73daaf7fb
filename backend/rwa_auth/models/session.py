from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.sql import func
from rwa_auth.database import Base
from rwa_auth.models.role import Role

class AuthSession(Base):
    """One row per refresh token handed out; access tokens are never stored."""

    __tablename__ = "auth_sessions"

    id = Column(Integer, primary_key=True)
    jti = Column(String(64), unique=True, nullable=False, index=True)
    wallet_address = Column(String(42), nullable=False, index=True)
    role = Column(Enum(Role), nullable=False)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    replaced_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

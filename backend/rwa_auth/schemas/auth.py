from datetime import datetime
from pydantic import BaseModel
from rwa_auth.models.role import Role

class ChallengeResponse(BaseModel):
    message: str
    nonce: str
    expires_at: datetime

class LoginRequest(BaseModel):
    wallet_address: str
    message: str
    signature: str

class RefreshRequest(BaseModel):
    refresh_token: str

class RevokeRequest(BaseModel):
    wallet_address: str

class IdentityResponse(BaseModel):
    wallet_address: str
    role: Role

class TokenPair(BaseModel):
    access: str
    refresh: str
    token_type: str = "bearer"
    expires_in: int

class LoginResponse(BaseModel):
    identity: IdentityResponse
    tokens: TokenPair

class RefreshResponse(BaseModel):
    tokens: TokenPair

class RevokeResponse(BaseModel):
    wallet_address: str
    revoked: int

class ErrorResponse(BaseModel):
    error: str
    detail: str

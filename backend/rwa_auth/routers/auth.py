from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from rwa_auth.core.deps import get_auth_service, get_current_identity, get_session_ledger, require_admin
from rwa_auth.core.security import Session
from rwa_auth.core.signature import normalize_address
from rwa_auth.schemas.auth import (
    ChallengeResponse,
    ErrorResponse,
    IdentityResponse,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RefreshResponse,
    RevokeRequest,
    RevokeResponse,
    TokenPair,
)
from rwa_auth.services.auth_service import AuthService, Identity
from rwa_auth.services.session_ledger import SessionLedger

router = APIRouter(prefix="/api/auth", tags=["auth"])

_errors = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
}

def _tokens(session: Session) -> TokenPair:
    return TokenPair(
        access=session.access_token,
        refresh=session.refresh_token,
        expires_in=session.access_expires_in,
    )

@router.get("/challenge", response_model=ChallengeResponse, responses=_errors)
async def get_challenge(
    wallet_address: str = Query(...),
    role: str = Query("INVESTOR"),
    auth: AuthService = Depends(get_auth_service),
):
    challenge = await auth.issue_challenge(wallet_address, role)
    return ChallengeResponse(
        message=challenge.message,
        nonce=challenge.nonce,
        expires_at=challenge.expires_at,
    )

@router.post("/login", response_model=LoginResponse, responses=_errors)
async def login(
    body: LoginRequest,
    auth: AuthService = Depends(get_auth_service),
    ledger: Optional[SessionLedger] = Depends(get_session_ledger),
):
    result = await auth.login(body.wallet_address, body.message, body.signature, ledger=ledger)
    return LoginResponse(
        identity=IdentityResponse(
            wallet_address=result.identity.wallet_address,
            role=result.identity.role,
        ),
        tokens=_tokens(result.session),
    )

@router.post("/refresh", response_model=RefreshResponse, responses=_errors)
async def refresh(
    body: RefreshRequest,
    auth: AuthService = Depends(get_auth_service),
    ledger: Optional[SessionLedger] = Depends(get_session_ledger),
):
    session = await auth.refresh(body.refresh_token, ledger=ledger)
    return RefreshResponse(tokens=_tokens(session))

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    identity: Identity = Depends(get_current_identity),
    auth: AuthService = Depends(get_auth_service),
    ledger: Optional[SessionLedger] = Depends(get_session_ledger),
):
    await auth.logout(identity, ledger=ledger)

@router.get("/me", response_model=IdentityResponse)
async def me(identity: Identity = Depends(get_current_identity)):
    return IdentityResponse(wallet_address=identity.wallet_address, role=identity.role)

@router.post("/admin/revoke", response_model=RevokeResponse, responses=_errors)
async def revoke_wallet_sessions(
    body: RevokeRequest,
    admin: Identity = Depends(require_admin),
    ledger: Optional[SessionLedger] = Depends(get_session_ledger),
):
    wallet = normalize_address(body.wallet_address)
    revoked = await ledger.revoke_all(wallet) if ledger is not None else 0
    return RevokeResponse(wallet_address=wallet, revoked=revoked)

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import FrozenSet, Optional

from rwa_auth.core.errors import AddressMismatch, AuthError, InvalidSignature, MalformedChallenge, RoleNotAuthorized
from rwa_auth.core.nonce_store import NonceStore
from rwa_auth.core.security import Session, SessionIssuer, TokenKind
from rwa_auth.core.signature import SignatureVerifier, addresses_match, normalize_address
from rwa_auth.models.role import Role, parse_role
from rwa_auth.services.session_ledger import SessionLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedChallenge:
    """What the caller sees of a challenge; the consumed flag stays internal."""
    wallet_address: str
    role: Role
    message: str
    nonce: str
    expires_at: datetime


@dataclass(frozen=True)
class Identity:
    wallet_address: str
    role: Role


@dataclass(frozen=True)
class LoginResult:
    identity: Identity
    session: Session


class AuthService:
    """Wallet sign-in: challenge → signature check → session.

    Each attempt moves CHALLENGED → VERIFIED → SESSION_ISSUED or stops with
    the specific AuthError of the step that failed. Nothing is retried here;
    the caller requests a fresh challenge.
    """

    def __init__(
        self,
        nonce_store: NonceStore,
        sessions: SessionIssuer,
        verifier: Optional[SignatureVerifier] = None,
        approved_admins: FrozenSet[str] = frozenset(),
    ):
        self.nonce_store = nonce_store
        self.sessions = sessions
        self.verifier = verifier or SignatureVerifier()
        self.approved_admins = frozenset(addr.lower() for addr in approved_admins)

    @property
    def challenges(self):
        return self.nonce_store.issuer

    def _ensure_role_allowed(self, wallet_address: str, role: Role) -> None:
        if role == Role.ADMIN and wallet_address.lower() not in self.approved_admins:
            raise RoleNotAuthorized("Wallet address not authorized for admin role")

    async def issue_challenge(self, wallet_address: str, role) -> IssuedChallenge:
        wallet = normalize_address(wallet_address)
        role = parse_role(role)
        self._ensure_role_allowed(wallet, role)

        challenge = await self.nonce_store.issue(wallet, role)
        logger.info("Challenge issued for %s (role=%s, nonce=%s…)", wallet, role.value, challenge.nonce[:8])
        return IssuedChallenge(
            wallet_address=wallet,
            role=role,
            message=challenge.message,
            nonce=challenge.nonce,
            expires_at=challenge.expires_at,
        )

    async def login(
        self,
        wallet_address: str,
        message: str,
        signature: str,
        ledger: Optional[SessionLedger] = None,
    ) -> LoginResult:
        try:
            result = await self._login(wallet_address, message, signature, ledger)
        except AuthError as exc:
            logger.warning("Login failed for %s: %s", wallet_address, exc.code)
            raise
        logger.info("Login successful for %s (role=%s)", result.identity.wallet_address, result.identity.role.value)
        return result

    async def _login(self, wallet_address, message, signature, ledger) -> LoginResult:
        wallet = normalize_address(wallet_address)

        # 1. VERIFIED: the signature recovers to the claimed wallet
        recovered = self.verifier.verify(message, signature)
        if not addresses_match(recovered, wallet):
            self._reject_foreign_signer(message, recovered, wallet)

        # 2. The message must be one of our challenges, issued to this wallet
        parsed = self.challenges.parse_message(message)
        if not addresses_match(parsed.wallet_address, wallet):
            raise AddressMismatch("Challenge was issued to a different wallet")
        self._ensure_role_allowed(wallet, parsed.role)

        # 3. Single use; failure kinds from the store propagate unchanged
        await self.nonce_store.consume(wallet, parsed.role, parsed.nonce, message)

        # 4. SESSION_ISSUED
        session = self.sessions.issue(wallet, parsed.role)
        if ledger is not None:
            await ledger.record(session)
        return LoginResult(identity=Identity(wallet, parsed.role), session=session)

    def _reject_foreign_signer(self, message: str, recovered: str, wallet: str) -> None:
        # A challenge addressed to the claimed wallet that recovers to someone
        # else carries a damaged signature; anything else was signed by another wallet
        try:
            parsed = self.challenges.parse_message(message)
        except MalformedChallenge:
            parsed = None
        if parsed is not None and addresses_match(parsed.wallet_address, wallet):
            raise InvalidSignature("Signature does not match the challenge issued to this wallet")
        raise AddressMismatch(f"Signature recovers to {recovered}, not {wallet}")

    async def refresh(self, refresh_token: str, ledger: Optional[SessionLedger] = None) -> Session:
        try:
            if ledger is None:
                session = self.sessions.refresh(refresh_token)
            else:
                claims = self.sessions.verify(refresh_token, TokenKind.REFRESH)
                session = self.sessions.issue(claims.subject, claims.role)
                await ledger.rotate(claims.jti, session)
        except AuthError as exc:
            logger.warning("Refresh failed: %s", exc.code)
            raise
        logger.info("Session refreshed for %s", session.subject)
        return session

    def authenticate(self, access_token: str) -> Identity:
        claims = self.sessions.verify(access_token, TokenKind.ACCESS)
        return Identity(wallet_address=claims.subject, role=claims.role)

    async def logout(self, identity: Identity, ledger: Optional[SessionLedger] = None) -> int:
        revoked = await ledger.revoke_all(identity.wallet_address) if ledger is not None else 0
        logger.info("Logout for %s, %d refresh tokens revoked", identity.wallet_address, revoked)
        return revoked

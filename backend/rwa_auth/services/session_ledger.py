import logging
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from rwa_auth.core.clock import Clock, utcnow
from rwa_auth.core.errors import InvalidToken
from rwa_auth.core.security import Session
from rwa_auth.models.session import AuthSession

logger = logging.getLogger(__name__)


class SessionLedger:
    """Tracks refresh tokens so they can be rotated once and revoked on logout.

    Only refresh token ids are stored. A refresh token that was already
    rotated or revoked is rejected, which also catches a stolen token being
    replayed after its owner refreshed.
    """

    def __init__(self, db: AsyncSession, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or utcnow

    async def record(self, session: Session) -> None:
        self.db.add(self._row(session))
        await self.db.commit()

    async def rotate(self, old_jti: str, session: Session) -> None:
        result = await self.db.execute(
            update(AuthSession)
            .where(AuthSession.jti == old_jti, AuthSession.revoked_at.is_(None))
            .values(revoked_at=self.clock(), replaced_by=session.refresh_jti)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            logger.warning("Refresh token %s… is revoked or unknown", old_jti[:8])
            raise InvalidToken("Refresh token has been revoked")
        self.db.add(self._row(session))
        await self.db.commit()

    async def revoke_all(self, wallet_address: str) -> int:
        result = await self.db.execute(
            update(AuthSession)
            .where(AuthSession.wallet_address == wallet_address, AuthSession.revoked_at.is_(None))
            .values(revoked_at=self.clock())
        )
        await self.db.commit()
        return result.rowcount

    async def active_count(self, wallet_address: str) -> int:
        rows = await self.db.scalars(
            select(AuthSession).where(
                AuthSession.wallet_address == wallet_address,
                AuthSession.revoked_at.is_(None),
            )
        )
        return len(rows.all())

    @staticmethod
    def _row(session: Session) -> AuthSession:
        return AuthSession(
            jti=session.refresh_jti,
            wallet_address=session.subject,
            role=session.role,
            issued_at=session.issued_at,
            expires_at=session.refresh_expires_at,
        )

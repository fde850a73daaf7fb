import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from rwa_auth.core.clock import Clock, utcnow
from rwa_auth.core.errors import InvalidToken, TokenExpired
from rwa_auth.models.role import Role


class TokenKind(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    role: Role
    kind: TokenKind
    issued_at: datetime
    expires_at: datetime
    jti: str


@dataclass(frozen=True)
class Session:
    subject: str
    role: Role
    access_token: str
    refresh_token: str
    issued_at: datetime
    access_expires_at: datetime
    refresh_expires_at: datetime
    refresh_jti: str

    @property
    def access_expires_in(self) -> int:
        return int((self.access_expires_at - self.issued_at).total_seconds())


class SessionIssuer:
    """Mints and checks the signed access/refresh token pair.

    Tokens are self-contained JWTs: ``sub`` (wallet), ``role``, ``iat``,
    ``exp``, ``kind`` and ``jti``. Expiry is checked against the injected
    clock rather than the library's wall clock.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Optional[Clock] = None,
    ):
        if not secret_key:
            raise ValueError("secret_key is required")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.clock = clock or utcnow

    def issue(self, subject: str, role: Role) -> Session:
        issued_at = self.clock().astimezone(timezone.utc).replace(microsecond=0)
        access_exp = issued_at + self.access_ttl
        refresh_exp = issued_at + self.refresh_ttl
        refresh_jti = uuid.uuid4().hex
        return Session(
            subject=subject,
            role=role,
            access_token=self._encode(subject, role, TokenKind.ACCESS, issued_at, access_exp, uuid.uuid4().hex),
            refresh_token=self._encode(subject, role, TokenKind.REFRESH, issued_at, refresh_exp, refresh_jti),
            issued_at=issued_at,
            access_expires_at=access_exp,
            refresh_expires_at=refresh_exp,
            refresh_jti=refresh_jti,
        )

    def verify(self, token: str, kind: TokenKind) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidToken(f"Invalid token: {exc}") from exc

        try:
            claims = TokenClaims(
                subject=payload["sub"],
                role=Role(payload["role"]),
                kind=TokenKind(payload["kind"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                jti=payload["jti"],
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken("Token is missing required claims") from exc

        if claims.kind != kind:
            raise InvalidToken(f"Expected a {kind.value} token, got a {claims.kind.value} token")
        if self.clock() >= claims.expires_at:
            raise TokenExpired()
        return claims

    def refresh(self, refresh_token: str) -> Session:
        claims = self.verify(refresh_token, TokenKind.REFRESH)
        return self.issue(claims.subject, claims.role)

    def _encode(
        self,
        subject: str,
        role: Role,
        kind: TokenKind,
        issued_at: datetime,
        expires_at: datetime,
        jti: str,
    ) -> str:
        payload = {
            "sub": subject,
            "role": role.value,
            "kind": kind.value,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": jti,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

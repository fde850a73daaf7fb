"""Sign-in challenge messages, built from one fixed template and parsed back with it."""
import json
import re
import secrets
import string
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Optional

from rwa_auth.core.clock import Clock, utcnow
from rwa_auth.core.errors import MalformedChallenge, UnknownRole
from rwa_auth.models.role import Role, parse_role

PROTOCOL_TAG = "rwa-auth/v1"
NONCE_BYTES = 16
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

MESSAGE_TEMPLATE = (
    "{app_name} wants you to sign in with your wallet.\n"
    "\n"
    "This request will not trigger a blockchain transaction or cost any gas.\n"
    "\n"
    "Protocol: {protocol}\n"
    "Wallet: {wallet_address}\n"
    "Role: {role}\n"
    "Nonce: {nonce}\n"
    "Issued At: {issued_at}\n"
    "Expires At: {expires_at}"
)

_FIELD_PATTERNS = {
    "wallet_address": r"0x[0-9a-fA-F]{40}",
    "role": r"[A-Z_]+",
    "nonce": r"[0-9a-f]{%d}" % (NONCE_BYTES * 2),
    "issued_at": r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z",
    "expires_at": r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z",
}


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


@dataclass
class Challenge:
    wallet_address: str
    role: Role
    nonce: str
    message: str
    issued_at: datetime
    expires_at: datetime
    consumed: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_json(self) -> str:
        data = asdict(self)
        data["role"] = self.role.value
        data["issued_at"] = self.issued_at.isoformat()
        data["expires_at"] = self.expires_at.isoformat()
        return json.dumps(data)

    @classmethod
    def from_json(cls, raw: str) -> "Challenge":
        data = json.loads(raw)
        data["role"] = Role(data["role"])
        data["issued_at"] = datetime.fromisoformat(data["issued_at"])
        data["expires_at"] = datetime.fromisoformat(data["expires_at"])
        return cls(**data)


@dataclass(frozen=True)
class ParsedChallenge:
    wallet_address: str
    role: Role
    nonce: str
    issued_at: datetime
    expires_at: datetime


class ChallengeIssuer:
    """Creates challenges and parses them back out of signed messages."""

    def __init__(
        self,
        app_name: str,
        ttl_seconds: int = 300,
        clock: Optional[Clock] = None,
    ):
        self.app_name = app_name
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock or utcnow
        self._pattern = self._compile_pattern()

    def create(self, wallet_address: str, role: Role) -> Challenge:
        # Second precision so the message text round-trips exactly
        issued_at = self.clock().astimezone(timezone.utc).replace(microsecond=0)
        expires_at = issued_at + self.ttl
        nonce = secrets.token_hex(NONCE_BYTES)
        return Challenge(
            wallet_address=wallet_address,
            role=role,
            nonce=nonce,
            message=self.build_message(wallet_address, role, nonce, issued_at, expires_at),
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def build_message(
        self,
        wallet_address: str,
        role: Role,
        nonce: str,
        issued_at: datetime,
        expires_at: datetime,
    ) -> str:
        return MESSAGE_TEMPLATE.format(
            app_name=self.app_name,
            protocol=PROTOCOL_TAG,
            wallet_address=wallet_address,
            role=role.value,
            nonce=nonce,
            issued_at=format_timestamp(issued_at),
            expires_at=format_timestamp(expires_at),
        )

    def parse_message(self, message: str) -> ParsedChallenge:
        match = self._pattern.fullmatch(message) if isinstance(message, str) else None
        if match is None:
            raise MalformedChallenge()
        try:
            role = parse_role(match["role"])
        except UnknownRole:
            raise MalformedChallenge("Challenge names an unknown role") from None
        return ParsedChallenge(
            wallet_address=match["wallet_address"],
            role=role,
            nonce=match["nonce"],
            issued_at=parse_timestamp(match["issued_at"]),
            expires_at=parse_timestamp(match["expires_at"]),
        )

    def _compile_pattern(self) -> re.Pattern:
        fixed = {"app_name": self.app_name, "protocol": PROTOCOL_TAG}
        parts = []
        for literal, field, _, _ in string.Formatter().parse(MESSAGE_TEMPLATE):
            parts.append(re.escape(literal))
            if field is None:
                continue
            if field in fixed:
                parts.append(re.escape(fixed[field]))
            else:
                parts.append(f"(?P<{field}>{_FIELD_PATTERNS[field]})")
        return re.compile("".join(parts))

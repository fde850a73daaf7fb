import enum
from rwa_auth.core.errors import UnknownRole

class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    INVESTOR = "INVESTOR"
    ORIGINATOR = "ORIGINATOR"

def parse_role(value) -> Role:
    """Map a caller-supplied role onto the closed set, raising UnknownRole otherwise."""
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        raise UnknownRole(f"Unknown role: {value!r}")
    try:
        return Role(value)
    except ValueError:
        raise UnknownRole(f"Unknown role: {value!r}") from None

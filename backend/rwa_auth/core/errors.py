"""Failure kinds of the wallet sign-in flow, each with its own ``code``."""


class AuthError(Exception):
    code = "AUTH_ERROR"
    status_code = 401
    default_detail = "Authentication failed"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidAddress(AuthError):
    code = "INVALID_ADDRESS"
    status_code = 400
    default_detail = "Wallet address is not a valid 20-byte hex address"


class UnknownRole(AuthError):
    code = "UNKNOWN_ROLE"
    status_code = 400
    default_detail = "Unknown role"


class RoleNotAuthorized(AuthError):
    code = "ROLE_NOT_AUTHORIZED"
    status_code = 403
    default_detail = "Wallet address not authorized for this role"


class InvalidSignature(AuthError):
    code = "INVALID_SIGNATURE"
    default_detail = "Invalid signature"


class AddressMismatch(AuthError):
    code = "ADDRESS_MISMATCH"
    default_detail = "Signature was not produced by the claimed wallet"


class MalformedChallenge(AuthError):
    code = "MALFORMED_CHALLENGE"
    status_code = 400
    default_detail = "Message is not a challenge issued by this service"


class ChallengeNotFound(AuthError):
    code = "CHALLENGE_NOT_FOUND"
    default_detail = "No outstanding challenge for this wallet and role"


class ChallengeExpired(AuthError):
    code = "CHALLENGE_EXPIRED"
    default_detail = "Challenge expired, request a new one"


class ChallengeAlreadyUsed(AuthError):
    code = "CHALLENGE_ALREADY_USED"
    default_detail = "Challenge already used, request a new one"


class InvalidToken(AuthError):
    code = "INVALID_TOKEN"
    default_detail = "Invalid token"


class TokenExpired(AuthError):
    code = "TOKEN_EXPIRED"
    default_detail = "Token expired"

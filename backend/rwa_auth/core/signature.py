import re
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import to_checksum_address
from rwa_auth.core.errors import InvalidAddress, InvalidSignature

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

# secp256k1 group order
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SIGNATURE_LENGTH = 65


def normalize_address(address: str) -> str:
    """Return the EIP-55 checksum form of a 0x-prefixed 20-byte hex address.

    Input casing is ignored, so a lowercase, uppercase or checksummed address
    all normalize to the same string.
    """
    if not isinstance(address, str) or not _ADDRESS_RE.match(address.strip()):
        raise InvalidAddress(f"Invalid wallet address: {address!r}")
    return to_checksum_address(address.strip().lower())


def addresses_match(a: str, b: str) -> bool:
    return a.lower() == b.lower()


class SignatureVerifier:
    """Recovers the signer of an EIP-191 ``personal_sign`` message.

    Stateless; one instance is shared between requests.
    """

    def verify(self, message: str, signature: str) -> str:
        sig_bytes = self._decode(signature)
        try:
            recovered = Account.recover_message(encode_defunct(text=message), signature=sig_bytes)
        except Exception as exc:
            raise InvalidSignature(f"Signature does not recover to an address: {exc}") from exc
        return to_checksum_address(recovered)

    @staticmethod
    def _decode(signature: str) -> bytes:
        if not isinstance(signature, str):
            raise InvalidSignature("Signature must be a hex string")
        try:
            sig_bytes = bytes.fromhex(signature.strip().removeprefix("0x"))
        except ValueError:
            raise InvalidSignature("Signature is not valid hex") from None
        if len(sig_bytes) != SIGNATURE_LENGTH:
            raise InvalidSignature(f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(sig_bytes)}")

        r = int.from_bytes(sig_bytes[:32], "big")
        s = int.from_bytes(sig_bytes[32:64], "big")
        v = sig_bytes[64]
        if v not in (0, 1, 27, 28):
            raise InvalidSignature(f"Invalid recovery id v={v}")
        if not (0 < r < SECP256K1_N) or not (0 < s < SECP256K1_N):
            raise InvalidSignature("Signature r/s out of range")
        # EIP-2: wallets only produce low-s signatures, a high-s one has been altered
        if s > SECP256K1_N // 2:
            raise InvalidSignature("Non-canonical (high-s) signature")
        return sig_bytes

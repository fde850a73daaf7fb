from typing import Optional
import httpx
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount


class AuthClientError(Exception):
    def __init__(self, status_code: int, code: str, detail: str):
        self.status_code = status_code
        self.code = code
        self.detail = detail
        super().__init__(f"{status_code} {code}: {detail}")


class AuthClient:
    """Walks the challenge/sign/login flow against a running auth service."""

    def __init__(
        self,
        api_url: str = "http://localhost:8000",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.api_url, timeout=self.timeout, transport=self.transport)

    @staticmethod
    def _unwrap(resp: httpx.Response) -> dict:
        if resp.is_success:
            return resp.json()
        try:
            body = resp.json()
        except ValueError:
            body = {}
        raise AuthClientError(
            resp.status_code,
            body.get("error", "HTTP_ERROR"),
            str(body.get("detail", resp.text)),
        )

    async def request_challenge(self, wallet_address: str, role: str = "INVESTOR") -> dict:
        async with self._client() as client:
            resp = await client.get(
                "/api/auth/challenge",
                params={"wallet_address": wallet_address, "role": role},
            )
            return self._unwrap(resp)

    async def login(self, account: LocalAccount, role: str = "INVESTOR") -> dict:
        challenge = await self.request_challenge(account.address, role)
        signed = account.sign_message(encode_defunct(text=challenge["message"]))
        async with self._client() as client:
            resp = await client.post(
                "/api/auth/login",
                json={
                    "wallet_address": account.address,
                    "message": challenge["message"],
                    "signature": "0x" + signed.signature.hex().removeprefix("0x"),
                },
            )
            return self._unwrap(resp)

    async def refresh(self, refresh_token: str) -> dict:
        async with self._client() as client:
            resp = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
            return self._unwrap(resp)

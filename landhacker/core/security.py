import logging

import httpx
from fastapi import Depends, Header, HTTPException, Request
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_404_NOT_FOUND

from .config import settings
from ..data.base import TokenVerifier, User
from ..services.errors import UpstreamServiceFailure

logger = logging.getLogger(__name__)

class InvalidToken(Exception):
    pass

class DevTokenVerifier(TokenVerifier):
    """
    The bearer token *is* the firebase uid. Local development only.
    """
    async def verify(self, token: str) -> str:
        if not token.strip():
            raise InvalidToken("empty token")
        return token.strip()

class HttpTokenVerifier(TokenVerifier):
    """
    Delegates ID-token verification to the identity service, which answers
    POST /verify {token} with {uid} or a 401.
    """
    def __init__(self, base_url: str, timeout: float = 5, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def verify(self, token: str) -> str:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(f"{self.base_url}/verify", json={"token": token})
            if r.status_code in (401, 403):
                raise InvalidToken("rejected by identity service")
            r.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamServiceFailure("Identity service unavailable", reason="identity_unavailable") from exc
        uid = r.json().get("uid")
        if not uid:
            raise InvalidToken("identity service returned no uid")
        return uid

def token_verifier() -> TokenVerifier:
    if settings.AUTH_PROVIDER == "http" and settings.AUTH_BASE_URL:
        return HttpTokenVerifier(settings.AUTH_BASE_URL)
    return DevTokenVerifier()

async def require_uid(request: Request, authorization: str | None = Header(default=None)) -> str:
    """
    Bearer-token guard. Returns the verified firebase uid.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    token = authorization.split("Bearer ", 1)[1]
    verifier: TokenVerifier = request.app.state.token_verifier
    try:
        return await verifier.verify(token)
    except InvalidToken as exc:
        logger.info("Token verification failed: %s", exc)
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid token")

async def require_user(request: Request, uid: str = Depends(require_uid)) -> User:
    user = await request.app.state.store.get_user_by_firebase_id(uid)
    if user is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="User not found")
    return user

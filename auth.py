import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException

from config import get_settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    key_fingerprint: str


def generate_api_key(num_bytes: int = 48) -> str:
    return secrets.token_urlsafe(num_bytes)


def fingerprint(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:12]


def require_api_key(
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
) -> RequestContext:
    if not x_api_key:
        raise HTTPException(status_code=401, detail="API Key is missing")
    expected = get_settings().api_key
    if not expected or not hmac.compare_digest(
        x_api_key.encode("utf-8"), expected.encode("utf-8")
    ):
        logger.warning(f"auth_rejected: fingerprint={fingerprint(x_api_key)}")
        raise HTTPException(status_code=403, detail="Invalid API Key")
    return RequestContext(key_fingerprint=fingerprint(x_api_key))


if __name__ == "__main__":
    print(f"Generated API Key: {generate_api_key()}")

import base64
import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, HTTPException, Request, Response
from loguru import logger
import config
from metrics import ERROR_COUNT, LOGIN_ATTEMPTS
from models import Session, SessionUser
from schemas import Credentials, SignInResponse, SessionResponse

DEFAULT_CALLBACK_URL = "/dashboard"
SIGN_IN_PAGE = "/login"

# Identifiants de démonstration (comparaison en clair)
DEMO_USERNAME = "admin"
DEMO_PASSWORD = "admin"
DEMO_USER = SessionUser(id="1", name="Admin User", email="admin@example.com")

router = APIRouter()


def authorize(username: Optional[str], password: Optional[str]) -> Optional[SessionUser]:
    """Returns the demo user for admin/admin, None for anything else."""
    if username == DEMO_USERNAME and password == DEMO_PASSWORD:
        return DEMO_USER
    return None


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def _sign(body: str, secret: str) -> str:
    digest = hmac.new(secret.encode(), body.encode(), hashlib.sha256).digest()
    return _b64encode(digest)


def encode_session(user: SessionUser, secret: str = None, max_age: int = None, now: float = None) -> str:
    """
    Serialise la session en jeton signé: payload JSON en base64url,
    suivi d'une signature HMAC-SHA256 (format "<payload>.<signature>").
    """
    secret = secret or config.SESSION_SECRET
    max_age = config.SESSION_MAX_AGE if max_age is None else max_age
    issued_at = int(time.time() if now is None else now)
    payload = {
        "sub": user.id,
        "name": user.name,
        "email": user.email,
        "iat": issued_at,
        "exp": issued_at + max_age,
    }
    body = _b64encode(json.dumps(payload, separators=(",", ":")).encode())
    return f"{body}.{_sign(body, secret)}"


def decode_session(token: str, secret: str = None, now: float = None) -> Optional[Session]:
    """
    Vérifie la signature et l'expiration du jeton.
    Retourne None pour un jeton malformé, falsifié ou expiré.
    """
    secret = secret or config.SESSION_SECRET
    body, sep, signature = (token or "").partition(".")
    if not sep or not body or not signature:
        return None
    if not hmac.compare_digest(signature.encode(), _sign(body, secret).encode()):
        logger.warning("Session token signature mismatch")
        return None
    try:
        payload = json.loads(_b64decode(body))
        expires_at = int(payload["exp"])
        user = SessionUser(id=str(payload["sub"]), name=payload["name"], email=payload["email"])
        current = time.time() if now is None else now
        if expires_at <= current:
            logger.info(f"Session for user {user.id} expired")
            return None
        # exp hors de la plage datetime: OSError / OverflowError / ValueError
        return Session(user=user, expires=datetime.fromtimestamp(expires_at, tz=timezone.utc))
    except (ValueError, KeyError, TypeError, OverflowError, OSError):
        logger.warning("Malformed session token payload")
        return None


def get_session(request: Request) -> Optional[Session]:
    """Dependency: session portée par le cookie de la requête, ou None."""
    token = request.cookies.get(config.SESSION_COOKIE_NAME)
    if not token:
        return None
    return decode_session(token)


def safe_callback_url(url: Optional[str]) -> str:
    # Redirection limitée aux chemins locaux
    if url and url.startswith("/") and not url.startswith("//"):
        return url
    return DEFAULT_CALLBACK_URL


@router.post("/api/auth/callback/credentials", response_model=SignInResponse)
async def sign_in(credentials: Credentials, response: Response):
    logger.info("Sign-in attempt for {!r}", credentials.username)
    user = authorize(credentials.username, credentials.password)
    if user is None:
        logger.warning("Invalid credentials for {!r}", credentials.username)
        LOGIN_ATTEMPTS.labels(service=config.SERVICE_NAME, result="failure").inc()
        ERROR_COUNT.labels(
            service=config.SERVICE_NAME,
            endpoint="/api/auth/callback/credentials",
            error_type="invalid_credentials"
        ).inc()
        raise HTTPException(status_code=401, detail="Invalid credentials")

    LOGIN_ATTEMPTS.labels(service=config.SERVICE_NAME, result="success").inc()
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=encode_session(user),
        max_age=config.SESSION_MAX_AGE,
        httponly=True,
        samesite="lax",
    )
    logger.info(f"User {user.id} signed in")
    return SignInResponse(url=safe_callback_url(credentials.callbackUrl))


@router.get("/api/auth/session")
async def read_session(request: Request):
    session = get_session(request)
    if session is None:
        return {}
    return SessionResponse(user=session.user.model_dump(), expires=session.expires)


@router.post("/api/auth/signout", response_model=SignInResponse)
async def sign_out(request: Request, response: Response):
    session = get_session(request)
    if session is not None:
        logger.info(f"User {session.user.id} signed out")
    response.delete_cookie(config.SESSION_COOKIE_NAME)
    return SignInResponse(url=SIGN_IN_PAGE)

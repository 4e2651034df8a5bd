"""Session handling and the authenticated-user dependency.

Sign-in itself happens at an external identity provider. :func:`sign_in`
is the hook its callback handler calls once the identity is verified: it
records the user row, mints a signed session token and, given the
callback's response, sets the session cookie. Requests carry the token
in that cookie or as a bearer token.
"""

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import APIKeyCookie, HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from . import crud
from .core import get_settings
from .database import get_db
from .logger import get_logger
from .models import User

logger = get_logger(__name__)

session_cookie = APIKeyCookie(name=get_settings().SESSION_COOKIE_NAME, auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)
router = APIRouter(prefix="/auth", tags=["auth"])


def create_session_token(email: str, expires_delta: timedelta | None = None) -> str:
    """Create a signed session token for the given email."""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.SESSION_EXPIRE_MINUTES)
    )
    to_encode = {"sub": email, "exp": expire, "scope": "session"}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_session_token(token: str) -> str | None:
    """
    Return the email carried by a session token.

    Returns:
        str | None: Email, or ``None`` if the token is invalid, expired
        or not a session token.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("scope") != "session":
        return None
    return payload.get("sub")


def sign_in(
    db: Session,
    email: str,
    name: str | None = None,
    response: Response | None = None,
) -> tuple[User, str]:
    """
    Record a verified identity and open a session for it.

    Args:
        db (Session): Database session.
        email (str): Email verified by the identity provider.
        name (str | None): Display name from the provider.
        response (Response | None): Callback response that receives the
            session cookie.

    Returns:
        tuple[User, str]: The user row and its session token.
    """
    user = crud.upsert_user(db, email, name)
    token = create_session_token(user.email)
    if response is not None:
        set_session_cookie(response, token)
    logger.info("user_signed_in", user_id=user.id)
    return user, token


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=settings.SESSION_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
    )


def get_current_user(
    cookie_token: str | None = Depends(session_cookie),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Dependency that returns the user owning the request's session.

    Raises:
        HTTPException: 401 without a valid session, 404 if the session's
            user row no longer exists.
    """
    token = cookie_token or (credentials.credentials if credentials else None)
    email = decode_session_token(token) if token else None
    if email is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = crud.get_user_by_email(db, email)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.post("/logout")
def logout(response: Response):
    """Clear the session cookie."""
    response.delete_cookie(get_settings().SESSION_COOKIE_NAME)
    return {"ok": True}

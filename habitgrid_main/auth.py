# Bearer-token guard for the API. Tokens are HS256 JWTs whose `sub` is the user id;
# minting them is the login service's job, not this app's.
from __future__ import annotations
import logging
from typing import Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from habitgrid_main.store import HabitStore
from utils.config import CONFIG

logger = logging.getLogger(__name__)

SECRET_KEY = CONFIG["server"]["secret_key"]
ALGORITHM = CONFIG["server"]["algorithm"]

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# ---------- App state accessors ----------
def get_store(request: Request) -> HabitStore:
    store: HabitStore = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=500, detail="Habit store not initialized")
    return store


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    store: HabitStore = Depends(get_store),
) -> Dict:
    if credentials is None:
        raise _unauthorized("No token, authorization denied")
    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.info("Rejected bearer token: %s", e)
        raise _unauthorized("Token is not valid")

    user_id = payload.get("sub")
    user = store.get_user(user_id) if user_id else None
    if user is None:
        raise _unauthorized("Token is not valid")
    return user

"""Authentication helpers and FastAPI security dependencies.

Admin-only endpoints accept either HTTP Basic credentials (what the
browser client sends) or a bearer token obtained from `/api/auth/login`.
Passwords are checked against their stored hash; a failed check raises
HTTPException(401) so the dependencies can be used directly in routes.
"""

from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBasic, HTTPBasicCredentials, HTTPBearer

from . import models, repositories, services
from .config import settings
from .store import MemoryStore, get_store

basic_scheme = HTTPBasic(auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str):
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='invalid token')


def _resolve_admin(
    basic: Optional[HTTPBasicCredentials],
    bearer: Optional[HTTPAuthorizationCredentials],
    store: MemoryStore,
) -> Optional[models.User]:
    if basic is not None:
        user = services.AuthService(store).verify(basic.username, basic.password)
        if not user:
            raise HTTPException(status_code=401, detail='invalid credentials', headers={'WWW-Authenticate': 'Basic'})
        return user
    if bearer is not None:
        payload = decode_token(bearer.credentials)
        user_id = payload.get('user_id')
        if not user_id:
            raise HTTPException(status_code=401, detail='invalid token payload')
        user = repositories.UserRepository(store).get(user_id)
        if not user:
            raise HTTPException(status_code=401, detail='user not found')
        return user
    return None


def get_current_admin(
    basic: Optional[HTTPBasicCredentials] = Security(basic_scheme),
    bearer: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    store: MemoryStore = Depends(get_store),
) -> models.User:
    """FastAPI dependency that returns the authenticated admin or raises 401."""
    user = _resolve_admin(basic, bearer, store)
    if user is None:
        raise HTTPException(status_code=401, detail='authentication required', headers={'WWW-Authenticate': 'Basic'})
    return user


def get_optional_admin(
    basic: Optional[HTTPBasicCredentials] = Security(basic_scheme),
    bearer: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    store: MemoryStore = Depends(get_store),
) -> Optional[models.User]:
    """Like `get_current_admin`, but anonymous requests resolve to `None`.

    Credentials that are present but wrong still raise 401.
    """
    return _resolve_admin(basic, bearer, store)

# backend/ecotrack/core/security.py
# Identité de l’appelant : génération/validation JWT et dépendances FastAPI (`CurrentUserId`, `OptionalUserId`).

import datetime as dt
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ecotrack.core.settings import get_settings
from ecotrack.core.utils import utcnow

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, expires_delta: dt.timedelta | None = None) -> str:
    """Crée un access token JWT.

    Description:
        Encode un JWT signé dont le claim `sub` porte l’identifiant opaque de
        l’utilisateur. Durée par défaut : `jwt_expiration_minutes`.

    Args:
        user_id (str): Identifiant stable de l’utilisateur.
        expires_delta (datetime.timedelta | None): Durée de validité.

    Returns:
        str: Jeton JWT signé.
    """
    settings = get_settings()
    expire = utcnow() + (expires_delta or dt.timedelta(minutes=settings.jwt_expiration_minutes))
    to_encode = {"sub": user_id, "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_user_id(token: str) -> str | None:
    """Décode un JWT et renvoie son `sub`, ou None si invalide/expiré."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub:
        return None
    return sub


def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Dépendance FastAPI : identifiant de l’utilisateur authentifié.

    Raises:
        HTTPException: 401 si le jeton est absent, invalide ou expiré.
    """
    user_id = decode_user_id(credentials.credentials) if credentials else None
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


def get_optional_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str | None:
    """Variante optionnelle : un jeton absent ou invalide donne un appelant anonyme."""
    if credentials is None:
        return None
    return decode_user_id(credentials.credentials)


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
OptionalUserId = Annotated[str | None, Depends(get_optional_user_id)]

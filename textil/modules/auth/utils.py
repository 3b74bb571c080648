from fastapi import HTTPException, status
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID
import jwt
from textil.core.config import settings

SECRET_KEY = settings.APP_SECRET_STRING
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES


def create_context_token(
    user_id: UUID,
    tenant_id: UUID,
    user_role: str,
    full_name: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT context token with tenant information.
    The session service issues these; the API only verifies them.
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": str(user_id),
        "tenant_id": str(tenant_id),
        "user_role": user_role,
        "full_name": full_name,
        "exp": expire,
        "type": "context",
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> dict:
    """
    Verify a JWT token and return the payload.
    """
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expirado")
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No se pudieron validar las credenciales",
            headers={"WWW-Authenticate": "Bearer"},
        )

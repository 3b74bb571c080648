"""
Dependencias de autenticación para FastAPI.
"""
from uuid import UUID
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from textil.modules.auth.schemas import AuthContext, Role
from textil.modules.auth.utils import verify_token

# Security scheme
security = HTTPBearer()

ALL_ROLES = [Role.ADMIN.value, Role.MANAGER.value, Role.USER.value]


class AuthDependencies:
    """Dependencias de autenticación reutilizables."""

    @staticmethod
    def get_auth_context(
        credentials: HTTPAuthorizationCredentials = Depends(security),
    ) -> AuthContext:
        """
        Obtener contexto de autenticación desde un token de contexto.
        El token debe incluir usuario, empresa (tenant) y rol.
        """
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No se pudieron validar las credenciales",
            headers={"WWW-Authenticate": "Bearer"},
        )

        payload = verify_token(credentials.credentials)
        user_id = payload.get("sub")
        if user_id is None or payload.get("type") != "context":
            raise credentials_exception

        tenant_id = payload.get("tenant_id")
        try:
            return AuthContext(
                user_id=UUID(user_id),
                tenant_id=UUID(tenant_id) if tenant_id else None,
                user_role=payload.get("user_role"),
                full_name=payload.get("full_name") or "",
            )
        except ValueError:
            raise credentials_exception

    @staticmethod
    def require_role(allowed_roles: list[str]):
        """
        Dependencia para requerir roles específicos.
        """
        def role_checker(auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)):
            if not auth_context.tenant_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Se requiere seleccionar una empresa"
                )

            if auth_context.user_role not in allowed_roles:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Se requiere uno de estos roles: {', '.join(allowed_roles)}"
                )

            return auth_context
        return role_checker

    @staticmethod
    def require_any_role():
        """Dependencia que requiere cualquier rol activo en una empresa."""
        return AuthDependencies.require_role(ALL_ROLES)


get_auth_context = AuthDependencies.get_auth_context
require_any_role = AuthDependencies.require_any_role

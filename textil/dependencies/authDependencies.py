from typing import Annotated
from fastapi import Depends
from textil.core.config import settings
from textil.modules.auth.dependencies import AuthDependencies
from textil.modules.auth.schemas import AuthContext, Role

# Any active role inside the tenant
any_role_dependency = Annotated[AuthContext, Depends(AuthDependencies.require_any_role())]

# Document preview/generation, payments and deletion
invoicing_dependency = Annotated[AuthContext, Depends(AuthDependencies.require_role(settings.INVOICING_ROLES))]

# Destructive operations on entries
admin_dependency = Annotated[AuthContext, Depends(AuthDependencies.require_role([Role.ADMIN.value]))]

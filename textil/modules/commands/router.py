from fastapi import APIRouter

from textil.dependencies.dbDependencies import db_dependency
from textil.dependencies.authDependencies import any_role_dependency
from textil.modules.commands.schemas import CommandRequest, CommandResult
from textil.modules.commands.service import CommandService

router = APIRouter(prefix="/commands", tags=["Commands"])


@router.post("/", response_model=CommandResult)
def execute_command(data: CommandRequest, db: db_dependency, auth_context: any_role_dependency):
    """
    Ejecutar una operación descrita por su `action`:
    create_entry, record_delivery, generate_invoice o delete_document.
    """
    return CommandService(db).execute(data.command, auth_context)

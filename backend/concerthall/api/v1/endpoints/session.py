"""
Endpoints de la credencial del usuario.

El frontend guarda aquí el token emitido por el backend de autenticación
para que el checkout pueda llamar a las APIs de pedidos y pagos.
"""

from fastapi import APIRouter, Depends, Response, status

from concerthall.api import deps
from concerthall.schemas.session_schema import Credential
from concerthall.services.auth_service import AuthService

router = APIRouter()


@router.put("/{client_id}/credential", status_code=status.HTTP_204_NO_CONTENT)
async def set_credential(
    client_id: str,
    credential: Credential,
    auth_service: AuthService = Depends(deps.get_auth_service),
):
    await auth_service.set_credential(client_id, credential)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{client_id}/credential", status_code=status.HTTP_204_NO_CONTENT)
async def forget_credential(
    client_id: str,
    auth_service: AuthService = Depends(deps.get_auth_service),
):
    """Cierra la sesión del cliente."""
    await auth_service.forget_credential(client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

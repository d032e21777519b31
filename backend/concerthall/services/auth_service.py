# backend/concerthall/services/auth_service.py
"""
Colaborador de autenticación.

Es el único lugar donde se decide si un cliente "está autenticado": hay un
token bearer bien formado y no expirado, y un registro de usuario. La emisión
y la verificación de firma del token son responsabilidad del backend de
autenticación; aquí solo se leen las claims sin verificar.
"""
import logging
import time
from typing import Optional
from urllib.parse import urlencode

from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from concerthall.core.config import Settings
from concerthall.core.exceptions import AuthExpiredError, AuthRequiredError, IntegrityError
from concerthall.schemas.session_schema import Credential
from concerthall.storage.client_storage import ClientStorage, SESSION

logger = logging.getLogger(__name__)


def is_token_well_formed(token: str, now: Optional[float] = None) -> bool:
    """Comprueba que el token es un JWT legible y que su `exp`, si lo tiene, no ha pasado."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return False
    exp = claims.get("exp")
    if exp is None:
        return True
    try:
        return float(exp) > (now if now is not None else time.time())
    except (TypeError, ValueError):
        return False


class AuthService:

    def __init__(self, settings: Settings, storage: ClientStorage):
        self.settings = settings
        self.storage = storage

    def _get_credential_key(self) -> str:
        return self.settings.CREDENTIAL_KEY

    def login_url(self, return_path: str) -> str:
        """URL de login que devuelve al usuario a `return_path` tras autenticarse."""
        return f"{self.settings.LOGIN_PATH}?{urlencode({'redirect': return_path})}"

    async def set_credential(self, client_id: str, credential: Credential) -> None:
        await self.storage.set(client_id, self._get_credential_key(), credential.model_dump(), scope=SESSION)

    async def forget_credential(self, client_id: str) -> None:
        await self.storage.remove(client_id, self._get_credential_key())

    async def get_credential(self, client_id: str) -> Optional[Credential]:
        """Devuelve la credencial vigente del cliente o None."""
        try:
            data = await self.storage.get(client_id, self._get_credential_key())
        except IntegrityError as e:
            logger.warning(f"Credencial ilegible para el cliente {client_id}: {e}")
            return None
        if not data:
            return None

        try:
            credential = Credential.model_validate(data)
        except PydanticValidationError:
            logger.warning(f"Credencial con formato inválido para el cliente {client_id}")
            return None

        if not credential.user or not is_token_well_formed(credential.token):
            return None
        return credential

    async def is_authenticated(self, client_id: str) -> bool:
        return await self.get_credential(client_id) is not None

    async def require_credential(self, client_id: str, return_path: str) -> Credential:
        """Devuelve la credencial o lanza AuthRequiredError con la URL de login."""
        credential = await self.get_credential(client_id)
        if credential is None:
            raise AuthRequiredError("Debes iniciar sesión para continuar", return_path, self.login_url(return_path))
        return credential

    async def expire(self, client_id: str, return_path: str) -> AuthExpiredError:
        """Olvida la credencial rechazada por un 401 y construye el error de sesión expirada."""
        await self.forget_credential(client_id)
        logger.info(f"Sesión expirada para el cliente {client_id}")
        return AuthExpiredError("Tu sesión ha expirado, vuelve a iniciar sesión", return_path, self.login_url(return_path))

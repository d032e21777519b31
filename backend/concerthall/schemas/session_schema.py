# backend/concerthall/schemas/session_schema.py
"""
Esquemas de la credencial del usuario guardada para un cliente.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict


class Credential(BaseModel):
    """Token bearer emitido por el backend de autenticación y el registro del usuario."""
    token: str = Field(..., min_length=1)
    user: Dict[str, Any] = Field(..., description="Registro del usuario autenticado")

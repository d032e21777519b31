"""
Traducción de las excepciones de dominio a respuestas HTTP.
"""

from fastapi import HTTPException, status

from concerthall.core.exceptions import (
    AuthExpiredError,
    AuthRequiredError,
    CheckoutStateError,
    ConcertHallError,
    UpstreamError,
    ValidationError,
)


def http_error(exc: ConcertHallError) -> HTTPException:
    """Convierte una excepción de dominio en el HTTPException que verá el frontend."""
    if isinstance(exc, AuthRequiredError):
        # Sin credencial o con la sesión expirada: el frontend redirige al login
        reason = "auth_expired" if isinstance(exc, AuthExpiredError) else "auth_required"
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "reason": reason,
                "message": exc.message,
                "loginUrl": exc.login_url,
                "returnPath": exc.return_path,
            },
        )
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.message)
    if isinstance(exc, CheckoutStateError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)
    if isinstance(exc, UpstreamError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": exc.message, "retryable": True, "upstreamStatus": exc.status_code},
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)

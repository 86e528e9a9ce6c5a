"""Domain error taxonomy.

Services raise these; the handlers registered in ``medvision.main`` turn them
into ``{"ok": false, "message": ..., "errors": ...}`` bodies with a stable
status code per kind.
"""
from typing import Any, Optional

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Erro interno do servidor"

    def __init__(self, message: Optional[str] = None, errors: Any = None):
        self.message = message or self.message
        self.errors = errors
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"ok": False, "message": self.message}
        if self.errors is not None:
            body["errors"] = self.errors
        return body


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Dados inválidos"


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Token inválido ou expirado"


class InvalidCredentials(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Email ou senha inválidos"


class InvalidOrExpiredCode(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Código inválido ou expirado"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Acesso negado"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Recurso não encontrado"


class DuplicateKey(AppError):
    status_code = status.HTTP_409_CONFLICT
    message = "Registro já cadastrado"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    message = "Operação conflita com o estado atual"


class SlotUnavailable(Conflict):
    message = "Horário indisponível para agendamento"


class InvalidTransition(Conflict):
    message = "Transição de status inválida"


class InvalidState(Conflict):
    message = "Agendamento em estado inválido para esta operação"


class RateLimited(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "Muitas requisições. Tente novamente mais tarde."


class DependencyFailure(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "Falha em serviço externo"

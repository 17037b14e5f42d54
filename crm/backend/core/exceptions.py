"""
Custom Exceptions.

Each error class carries a stable ``code`` returned in the API error
envelope. Default messages are French, as they reach end users through the
REST API and the Telegram assistant.
"""

from typing import Any


class ApplicationError(Exception):
    code = "SYS_INTERNAL_ERROR"
    default_message = "Erreur interne"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(ApplicationError):
    code = "RES_NOT_FOUND"
    default_message = "Ressource non trouvée"


class ValidationError(ApplicationError):
    """Business rule or required field violated (400)."""

    code = "VAL_VALIDATION_ERROR"
    default_message = "Données invalides"


class AuthenticationError(ApplicationError):
    code = "AUTH_UNAUTHORIZED"
    default_message = "Authentification requise"


class AuthorizationError(ApplicationError):
    code = "AUTHZ_FORBIDDEN"
    default_message = "Accès refusé"


class ConflictError(ApplicationError):
    """State conflict: duplicate, already converted, still referenced."""

    code = "RES_CONFLICT"
    default_message = "Conflit de ressource"


class ExternalServiceError(ApplicationError):
    """SMTP, OpenAI, Graph, GoCardless, OVH, Cloudflare or Telegram failed."""

    code = "SYS_EXTERNAL_SERVICE_ERROR"
    default_message = "Erreur du service externe"


class DatabaseError(ApplicationError):
    code = "SYS_DATABASE_ERROR"
    default_message = "Erreur de base de données"

class AtendimentoException(Exception):
    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class DatabaseError(AtendimentoException):
    pass


class ValidationError(AtendimentoException):
    pass


class AuthorizationError(AtendimentoException):
    pass


class ConfigurationError(AtendimentoException):
    pass


class ResourceNotFoundError(AtendimentoException):
    def __init__(self, resource_type: str, resource_id: any):
        message = f"{resource_type} com ID {resource_id} não encontrado"
        details = {'resource_type': resource_type, 'resource_id': resource_id}
        super().__init__(message, details)


class ConflictError(AtendimentoException):
    """Estado atual impede a operação (sobreposição de temporadas, exclusão bloqueada...)."""

    def __init__(self, message: str, conflicts: list = None, details: dict = None):
        details = dict(details or {})
        details['conflicts'] = conflicts or []
        super().__init__(message, details)
        self.conflicts = details['conflicts']


class QuotaExceededError(AtendimentoException):
    def __init__(self, limit_name: str, limit: int, current: int, requested: int = None, retry_after: int = None):
        message = f"Limite '{limit_name}' excedido: {current}/{limit}"
        details = {
            'limit_name': limit_name,
            'limit': limit,
            'current': current,
            'requested': requested,
            'retry_after': retry_after,
        }
        super().__init__(message, details)
        self.limit_name = limit_name
        self.limit = limit
        self.current = current
        self.requested = requested
        self.retry_after = retry_after

# src/domain/exceptions.py
"""Excepciones del dominio de planeamiento de cargas."""


class ErpError(Exception):
    """Error base de la comunicación con el ERP."""

    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class AuthError(ErpError):
    """Falló el intercambio de credenciales con el ERP."""
    pass


class FetchError(ErpError):
    """Falló la obtención de la lista de cargas del ERP."""
    pass


class RepositoryError(Exception):
    """Error de la capa de persistencia."""
    pass


class DuplicateCargaError(RepositoryError):
    """La carga viola la clave única de deduplicación."""
    pass


class CargaNotFoundError(Exception):
    def __init__(self, carga_id: int):
        super().__init__(f"Carga {carga_id} no encontrada.")
        self.carga_id = carga_id


class InvalidStateError(ValueError):
    pass


class InvalidCountryError(ValueError):
    pass


class InvalidServiceError(ValueError):
    pass

# src/domain/interfaces.py
from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from .entities import Carga, DedupKey, ExternalOrder


class CargaRepository(ABC):
    """
    Contrato (Interfaz) para la capa de acceso a datos de Cargas.
    La capa de Aplicación solo conoce esta Interfaz, no la implementación.
    """

    @abstractmethod
    def list_cargas(self) -> List[Carga]:
        """Recupera todas las cargas con sus servicios."""
        pass

    @abstractmethod
    def get_carga(self, carga_id: int) -> Optional[Carga]:
        pass

    @abstractmethod
    def find_by_dedup_key(self, key: DedupKey) -> Optional[int]:
        """Devuelve el id de la carga que coincide con la clave de deduplicación, si existe."""
        pass

    @abstractmethod
    def insert_carga(self, carga: Carga) -> Carga:
        """
        Inserta la carga y sus servicios en una única transacción y retorna la
        entidad con el id asignado. Lanza DuplicateCargaError si viola la clave única.
        """
        pass

    @abstractmethod
    def update_carga(self, carga_id: int, changes: Dict[str, Any]) -> bool:
        """
        Actualiza solo los campos presentes en `changes`. Si incluye 'services'
        reemplaza el conjunto completo. Retorna False si la carga no existe.
        """
        pass

    @abstractmethod
    def delete_carga(self, carga_id: int) -> bool:
        """Elimina la carga y sus servicios. Retorna False si no existe."""
        pass

    @abstractmethod
    def count_by_state(self, year: Optional[int] = None) -> Dict[int, int]:
        """Cuenta cargas por estado, opcionalmente filtrando por año de carga (o sin fecha)."""
        pass


class ErpClient(ABC):
    """Contrato del cliente del ERP externo."""

    @abstractmethod
    def authenticate(self) -> str:
        """Intercambia las credenciales de servicio por un token. Lanza AuthError."""
        pass

    @abstractmethod
    def fetch_orders(self, credential: str) -> List[ExternalOrder]:
        """Obtiene el snapshot completo de cargas del ERP. Lanza FetchError."""
        pass

# src/domain/entities.py
from datetime import datetime, date
from dataclasses import dataclass, field
from decimal import Decimal
from enum import IntEnum
from typing import Optional, List, Dict, Any

from .reference_data import MARKET_MAP, ORDER_STATE_MAP, SERVICE_MAP
from .exceptions import InvalidStateError, InvalidCountryError, InvalidServiceError


class OrderState(IntEnum):
    """Ciclo de vida de una carga: NEW -> TO_DEFINE/SCHEDULED -> COMPLETED."""
    NEW = 1
    TO_DEFINE = 2
    SCHEDULED = 3
    COMPLETED = 4


class ServiceTag(IntEnum):
    TRANSPORT = 2
    INSTALLATION = 3
    CIVIL_WORKS = 4
    ACCESS_SYSTEM = 5
    LEVEL_SYSTEM = 6
    CARE_PLAN = 7


# Un registro del ERP tal como llega: claves nativas de Primavera, sin tipar.
ExternalOrder = Dict[str, Any]


def validate_state_id(state_id: int) -> int:
    """Rechaza cualquier estado fuera de los cuatro definidos (nunca se corrige)."""
    if not isinstance(state_id, int) or isinstance(state_id, bool) or state_id not in ORDER_STATE_MAP:
        raise InvalidStateError(f"Estado de carga desconocido: {state_id!r}")
    return int(state_id)


def validate_service_ids(service_ids) -> List[int]:
    """Normaliza la lista de servicios: sin duplicados, ordenada, solo IDs conocidos."""
    normalized = set()
    for service_id in service_ids:
        if not isinstance(service_id, int) or isinstance(service_id, bool) or service_id not in SERVICE_MAP:
            raise InvalidServiceError(f"Servicio desconocido: {service_id!r}")
        normalized.add(int(service_id))
    return sorted(normalized)


@dataclass
class CargaState:
    """Entidad para el estado de una carga."""
    id: int
    code: str
    name: str


@dataclass
class Carga:
    """Entidad central de Carga (pedido de carga)."""
    id: Optional[int]
    client: Optional[str]
    country_id: Optional[int]
    state_id: int = OrderState.NEW
    created_at: datetime = field(default_factory=datetime.now)
    external_ref: Optional[str] = None
    client_order_ref: Optional[str] = None
    erp_order_ref: Optional[str] = None
    project: Optional[str] = None
    merchandise: Optional[str] = None
    merchandise_pending: Optional[str] = None
    payment_terms: Optional[str] = None
    delivery_contacts: Optional[str] = None
    delivery_location: Optional[str] = None
    carrier: Optional[str] = None
    transport_cost: Optional[Decimal] = None
    scheduled_load_at: Optional[datetime] = None
    delivery_deadline_text: Optional[str] = None
    production_start: Optional[date] = None
    production_end: Optional[date] = None
    # Solo las cargas importadas del ERP participan en la deduplicación
    from_erp: bool = False
    services: List[int] = field(default_factory=list)

    def __post_init__(self):
        self.state_id = validate_state_id(self.state_id)
        if self.country_id is not None and self.country_id not in MARKET_MAP:
            raise InvalidCountryError(f"País desconocido: {self.country_id!r}")
        self.services = validate_service_ids(self.services)

    @property
    def state(self) -> CargaState:
        """Devuelve el objeto de estado mapeado."""
        info = ORDER_STATE_MAP[self.state_id]
        return CargaState(self.state_id, info["code"], info["name"])

    @property
    def market(self) -> Optional[str]:
        if self.country_id is None:
            return None
        return MARKET_MAP[self.country_id]

    @property
    def production_days(self) -> Optional[int]:
        """Duración de la ventana de producción en días (ambos extremos incluidos)."""
        if self.production_start is None or self.production_end is None:
            return None
        return (self.production_end - self.production_start).days + 1


@dataclass(frozen=True)
class DedupKey:
    """
    Clave compuesta que decide si un registro del ERP ya fue importado.
    None y cadena vacía se consideran iguales.
    """
    external_ref: str
    client: str
    merchandise: str
    delivery_location: str

    @classmethod
    def of(cls, external_ref, client, merchandise, delivery_location) -> "DedupKey":
        return cls(
            external_ref=external_ref or "",
            client=client or "",
            merchandise=merchandise or "",
            delivery_location=delivery_location or "",
        )

    @classmethod
    def for_carga(cls, carga: Carga) -> "DedupKey":
        return cls.of(carga.external_ref, carga.client, carga.merchandise, carga.delivery_location)


@dataclass
class MappingIssue:
    """Problema detectado al mapear un registro del ERP."""
    field: str
    message: str
    severity: str = "warning"  # "warning": se inserta igual; "error": se descarta el registro


@dataclass
class ParsedOrder:
    carga: Carga
    dedup_key: DedupKey
    dropped_services: List[str] = field(default_factory=list)


@dataclass
class ParseResult:
    """Resultado etiquetado del parser: o una carga lista para insertar o un problema bloqueante."""
    parsed: Optional[ParsedOrder] = None
    issue: Optional[MappingIssue] = None
    warnings: List[MappingIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.parsed is not None

    @classmethod
    def success(cls, parsed: ParsedOrder, warnings: Optional[List[MappingIssue]] = None) -> "ParseResult":
        return cls(parsed=parsed, warnings=warnings or [])

    @classmethod
    def failure(cls, issue: MappingIssue) -> "ParseResult":
        return cls(issue=issue)


@dataclass
class SyncResult:
    """Resumen de una ejecución de la sincronización con el ERP."""
    inserted_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "inserted_count": self.inserted_count,
            "skipped_count": self.skipped_count,
            "failed_count": self.failed_count,
        }
        if self.error is not None:
            result["error"] = self.error
        return result

# src/application/use_cases.py
from datetime import datetime, date
from decimal import Decimal, InvalidOperation
from typing import List, Dict, Any, Optional, Callable

from dateutil import parser as date_parser

from src.domain.interfaces import CargaRepository
from src.domain.entities import Carga, OrderState, validate_state_id, validate_service_ids
from src.domain.exceptions import CargaNotFoundError, InvalidCountryError, InvalidServiceError
from src.domain.reference_data import MARKET_MAP, ORDER_STATE_MAP, SERVICE_MAP, SERVICE_CODE_TO_ID
from src.domain.query import (
    OrderFilters, SortSpec, PageRequest, Page, filter_cargas, sort_cargas, paginate, bucket_cargas, bucket_key,
)

TEXT_FIELDS = (
    "external_ref", "client", "client_order_ref", "erp_order_ref", "project", "merchandise",
    "merchandise_pending", "payment_terms", "delivery_contacts", "delivery_location", "carrier",
    "delivery_deadline_text",
)
SCHEDULE_FIELDS = ("scheduled_load_at", "production_start", "production_end")
# Campos calculados que el frontend puede reenviar tal cual; se ignoran
READ_ONLY_FIELDS = ("id", "created_at", "from_erp", "market", "state", "production_days", "bucket")


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def format_carga(carga: Carga) -> Dict[str, Any]:
    """Formatea una carga para la respuesta JSON."""
    return {
        "id": carga.id,
        "external_ref": carga.external_ref,
        "client": carga.client,
        "country_id": carga.country_id,
        "market": carga.market,
        "client_order_ref": carga.client_order_ref,
        "erp_order_ref": carga.erp_order_ref,
        "project": carga.project,
        "state_id": carga.state_id,
        "state": carga.state.name,
        "scheduled_load_at": _format_datetime(carga.scheduled_load_at),
        "delivery_contacts": carga.delivery_contacts,
        "merchandise": carga.merchandise,
        "payment_terms": carga.payment_terms,
        "merchandise_pending": carga.merchandise_pending,
        "delivery_location": carga.delivery_location,
        "carrier": carga.carrier,
        "transport_cost": float(carga.transport_cost) if carga.transport_cost is not None else None,
        "delivery_deadline_text": carga.delivery_deadline_text,
        "production_start": _format_datetime(carga.production_start),
        "production_end": _format_datetime(carga.production_end),
        "production_days": carga.production_days,
        "created_at": _format_datetime(carga.created_at),
        "from_erp": carga.from_erp,
        "services": [SERVICE_MAP[s]["code"] for s in carga.services],
        "bucket": bucket_key(carga),
    }


# --- Parsing del payload de entrada ---

def _parse_datetime(field: str, value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    try:
        parsed = date_parser.parse(str(value))
        # Mismo criterio que el parser del ERP: hora local sin zona
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone().replace(tzinfo=None)
    except (ValueError, OverflowError):
        raise ValueError(f"Fecha inválida en '{field}': {value!r}")
    return parsed


def _parse_date(field: str, value) -> Optional[date]:
    parsed = _parse_datetime(field, value)
    return parsed.date() if parsed else None


def _parse_services(value) -> List[int]:
    if not isinstance(value, list):
        raise InvalidServiceError("'services' debe ser una lista.")
    service_ids = []
    for item in value:
        if isinstance(item, str):
            if item not in SERVICE_CODE_TO_ID:
                raise InvalidServiceError(f"Servicio desconocido: {item!r}")
            service_ids.append(SERVICE_CODE_TO_ID[item])
        else:
            service_ids.append(item)
    return validate_service_ids(service_ids)


def parse_carga_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convierte el JSON recibido en un diccionario de cambios con los tipos del dominio.
    Solo incluye las claves presentes (semántica de actualización parcial).
    """
    if not isinstance(data, dict):
        raise ValueError("El cuerpo de la petición debe ser un objeto JSON.")

    changes: Dict[str, Any] = {}
    for key, value in data.items():
        if key in READ_ONLY_FIELDS:
            continue
        if key in TEXT_FIELDS:
            if value is not None and not isinstance(value, str):
                raise ValueError(f"'{key}' debe ser texto.")
            changes[key] = value or None
        elif key == "country_id":
            if value is not None and (not isinstance(value, int) or isinstance(value, bool)
                                      or value not in MARKET_MAP):
                raise InvalidCountryError(f"País desconocido: {value!r}")
            changes[key] = value
        elif key == "state_id":
            changes[key] = validate_state_id(value)
        elif key == "scheduled_load_at":
            changes[key] = _parse_datetime(key, value)
        elif key in ("production_start", "production_end"):
            changes[key] = _parse_date(key, value)
        elif key == "transport_cost":
            if value is None or value == "":
                changes[key] = None
            else:
                try:
                    changes[key] = Decimal(str(value))
                except InvalidOperation:
                    raise ValueError(f"Costo de transporte inválido: {value!r}")
        elif key == "services":
            changes[key] = _parse_services(value)
        else:
            raise ValueError(f"Campo desconocido: {key}")
    return changes


def _check_production_window(start: Optional[date], end: Optional[date]) -> None:
    if start is not None and end is not None and end < start:
        raise ValueError("La fecha de fin de producción es anterior a la de inicio.")


# --- Casos de uso ---

class ListCargasUseCase:
    """
    Caso de uso: listar cargas con filtros, ordenamiento y paginación.
    Depende de CargaRepository (patrón de inyección de dependencias).
    """

    def __init__(self, carga_repository: CargaRepository):
        self.repository = carga_repository

    def execute(self, filters: OrderFilters, sort: SortSpec, page: PageRequest) -> Page:
        cargas = self.repository.list_cargas()
        selected = sort_cargas(filter_cargas(cargas, filters), sort)
        result = paginate(selected, page)
        result.items = [format_carga(carga) for carga in result.items]
        return result


class GetCargaUseCase:
    def __init__(self, carga_repository: CargaRepository):
        self.repository = carga_repository

    def execute(self, carga_id: int) -> Dict[str, Any]:
        carga = self.repository.get_carga(carga_id)
        if carga is None:
            raise CargaNotFoundError(carga_id)
        return format_carga(carga)


class CreateCargaUseCase:
    """
    Caso de uso: crear una carga manualmente. El estado por defecto es NEW.
    """

    def __init__(self, carga_repository: CargaRepository, clock: Callable[[], datetime] = datetime.now):
        self.repository = carga_repository
        self.clock = clock

    def execute(self, data: Dict[str, Any]) -> Carga:
        changes = parse_carga_payload(data)
        changes.setdefault("state_id", OrderState.NEW)
        _check_production_window(changes.get("production_start"), changes.get("production_end"))

        carga = Carga(
            id=None,
            client=changes.pop("client", None),
            country_id=changes.pop("country_id", None),
            created_at=self.clock(),
            **changes
        )
        return self.repository.insert_carga(carga)


class UpdateCargaUseCase:
    """
    Caso de uso: edición de una carga por el equipo (cualquier campo, incluido
    el estado). Último en escribir gana.
    """

    def __init__(self, carga_repository: CargaRepository):
        self.repository = carga_repository

    def execute(self, carga_id: int, data: Dict[str, Any]) -> None:
        changes = parse_carga_payload(data)
        if "production_start" in changes or "production_end" in changes:
            current = self.repository.get_carga(carga_id)
            if current is None:
                raise CargaNotFoundError(carga_id)
            _check_production_window(
                changes.get("production_start", current.production_start),
                changes.get("production_end", current.production_end),
            )
        if not changes:
            if self.repository.get_carga(carga_id) is None:
                raise CargaNotFoundError(carga_id)
            return
        if not self.repository.update_carga(carga_id, changes):
            raise CargaNotFoundError(carga_id)


class ScheduleCargaUseCase:
    """
    Caso de uso: escrituras del calendario/Gantt (ventana de producción y
    fecha prevista de carga).
    """

    def __init__(self, carga_repository: CargaRepository):
        self.repository = carga_repository

    def execute(self, carga_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise ValueError("El cuerpo de la petición debe ser un objeto JSON.")
        unexpected = set(data) - set(SCHEDULE_FIELDS)
        if unexpected:
            raise ValueError(f"Campos no permitidos en la planificación: {sorted(unexpected)}")
        if not data:
            raise ValueError(f"Se requiere al menos uno de: {', '.join(SCHEDULE_FIELDS)}")

        current = self.repository.get_carga(carga_id)
        if current is None:
            raise CargaNotFoundError(carga_id)

        changes = parse_carga_payload(data)
        _check_production_window(
            changes.get("production_start", current.production_start),
            changes.get("production_end", current.production_end),
        )
        if not self.repository.update_carga(carga_id, changes):
            raise CargaNotFoundError(carga_id)

        for field, value in changes.items():
            setattr(current, field, value)
        return format_carga(current)


class DeleteCargaUseCase:
    def __init__(self, carga_repository: CargaRepository):
        self.repository = carga_repository

    def execute(self, carga_id: int) -> None:
        if not self.repository.delete_carga(carga_id):
            raise CargaNotFoundError(carga_id)


class CountCargasUseCase:
    """
    Caso de uso: contadores del dashboard (total, activas y por estado).
    """

    def __init__(self, carga_repository: CargaRepository):
        self.repository = carga_repository

    def execute(self, year: Optional[int] = None) -> Dict[str, Any]:
        counts = self.repository.count_by_state(year)
        by_state = {info["name"]: counts.get(state_id, 0) for state_id, info in ORDER_STATE_MAP.items()}
        total = sum(counts.values())
        return {
            "total": total,
            "active": total - counts.get(OrderState.COMPLETED, 0),
            "by_state": by_state,
            "year": year,
        }


class GetPlanningBucketsUseCase:
    """
    Caso de uso: agrupar las cargas por día de carga para el calendario/Gantt.
    Las cargas NEW siempre van a 'unscheduled'.
    """

    def __init__(self, carga_repository: CargaRepository):
        self.repository = carga_repository

    def execute(self, filters: OrderFilters) -> Dict[str, List[Dict[str, Any]]]:
        cargas = sort_cargas(filter_cargas(self.repository.list_cargas(), filters), SortSpec())
        return {
            bucket: [format_carga(carga) for carga in items]
            for bucket, items in bucket_cargas(cargas).items()
        }


class GetLookupUseCase:
    """Caso de uso: tablas de referencia para los formularios y filtros."""

    def execute(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "countries": [{"id": country_id, "code": code} for country_id, code in MARKET_MAP.items()],
            "states": [{"id": state_id, **info} for state_id, info in ORDER_STATE_MAP.items()],
            "services": [{"id": service_id, **info} for service_id, info in SERVICE_MAP.items()],
        }

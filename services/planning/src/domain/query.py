# src/domain/query.py
"""
Motor de consulta y ubicación de cargas.

Filtra, ordena y pagina listas de cargas y las ubica en los buckets del
calendario/Gantt. Todas las vistas (lista, calendario, Gantt) leen a través
de estas funciones; ninguna dispara la sincronización con el ERP.
"""
import math
import unicodedata
from dataclasses import dataclass
from datetime import datetime, date, time
from typing import Optional, List, Dict, Callable, Any, Iterable

from .entities import Carga, OrderState
from .exceptions import InvalidStateError
from .reference_data import ORDER_STATE_MAP, STATE_FILTER_ACTIVE, STATE_FILTER_ALL

UNSCHEDULED = "unscheduled"
DEFAULT_PAGE_SIZE = 48

SORT_ASC = "asc"
SORT_DESC = "desc"


@dataclass
class OrderFilters:
    search: Optional[str] = None
    country_id: Optional[int] = None
    # None/0 = activas (todas menos COMPLETED), -1 = todas, 1..4 = exacto
    state_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    # Solo aplica si no hay rango de fechas; incluye las cargas sin fecha
    year: Optional[int] = None

    def __post_init__(self):
        if self.state_id not in (None, STATE_FILTER_ACTIVE, STATE_FILTER_ALL) \
                and self.state_id not in ORDER_STATE_MAP:
            raise InvalidStateError(f"Filtro de estado desconocido: {self.state_id!r}")


@dataclass
class SortSpec:
    key: str = "scheduled_load_at"
    direction: str = SORT_ASC

    def __post_init__(self):
        if self.key not in SORT_FIELDS:
            raise ValueError(f"Campo de ordenamiento desconocido: {self.key}")
        if self.direction not in (SORT_ASC, SORT_DESC):
            raise ValueError(f"Dirección de ordenamiento inválida: {self.direction}")


@dataclass
class PageRequest:
    page_index: int = 0
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self):
        if self.page_size <= 0:
            raise ValueError("page_size debe ser mayor que 0.")
        if self.page_index < 0:
            raise ValueError("page_index no puede ser negativo.")

    @property
    def offset(self) -> int:
        return self.page_index * self.page_size


@dataclass
class Page:
    items: List[Any]
    total_count: int
    page_count: int
    page_index: int
    page_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": self.items,
            "total_count": self.total_count,
            "page_count": self.page_count,
            "page_index": self.page_index,
            "page_size": self.page_size,
        }


# --- Filtrado ---

def _as_lower_bound(value: date) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def _as_upper_bound(value: date) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.max)


def _search_fields(carga: Carga) -> Iterable[Optional[str]]:
    return (
        carga.client,
        carga.client_order_ref,
        carga.erp_order_ref,
        carga.project,
        carga.delivery_location,
        carga.merchandise,
    )


def matches(carga: Carga, filters: OrderFilters) -> bool:
    """Indica si una carga cumple todos los filtros."""
    if filters.search:
        needle = filters.search.strip().casefold()
        if needle and not any(needle in value.casefold() for value in _search_fields(carga) if value):
            return False

    if filters.country_id and carga.country_id != filters.country_id:
        return False

    if filters.state_id in (None, STATE_FILTER_ACTIVE):
        if carga.state_id == OrderState.COMPLETED:
            return False
    elif filters.state_id != STATE_FILTER_ALL and carga.state_id != filters.state_id:
        return False

    load_at = carga.scheduled_load_at
    if filters.date_from is not None or filters.date_to is not None:
        if load_at is None:
            return False
        if filters.date_from is not None and load_at < _as_lower_bound(filters.date_from):
            return False
        if filters.date_to is not None and load_at > _as_upper_bound(filters.date_to):
            return False
    elif filters.year is not None and load_at is not None and load_at.year != filters.year:
        return False

    return True


def filter_cargas(cargas: Iterable[Carga], filters: OrderFilters) -> List[Carga]:
    return [carga for carga in cargas if matches(carga, filters)]


# --- Ordenamiento ---

def collation_key(value: str):
    """
    Clave de ordenación aproximada a la colación pt-PT: primero sin acentos ni
    mayúsculas, después con acentos y por último el texto original.
    """
    decomposed = unicodedata.normalize("NFKD", value)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    return base, value.casefold(), value


SORT_FIELDS: Dict[str, Callable[[Carga], Any]] = {
    "id": lambda c: c.id,
    "client": lambda c: c.client,
    "project": lambda c: c.project,
    "merchandise": lambda c: c.merchandise,
    "delivery_location": lambda c: c.delivery_location,
    "delivery_deadline_text": lambda c: c.delivery_deadline_text,
    "market": lambda c: c.market,
    "state": lambda c: c.state_id,
    "scheduled_load_at": lambda c: c.scheduled_load_at,
    "created_at": lambda c: c.created_at,
    "production_start": lambda c: c.production_start,
}


def sort_cargas(cargas: Iterable[Carga], sort: SortSpec) -> List[Carga]:
    """
    Ordena según la clave y dirección pedidas. Los nulos van al final en orden
    ascendente y al principio en descendente.
    """
    getter = SORT_FIELDS[sort.key]

    def key(carga: Carga):
        value = getter(carga)
        if value is None or value == "":
            return (1,)
        if isinstance(value, str):
            return (0, collation_key(value))
        return (0, value)

    return sorted(cargas, key=key, reverse=sort.direction == SORT_DESC)


# --- Paginación ---

def paginate(items: List[Any], page: PageRequest) -> Page:
    total = len(items)
    return Page(
        items=items[page.offset:page.offset + page.page_size],
        total_count=total,
        page_count=math.ceil(total / page.page_size),
        page_index=page.page_index,
        page_size=page.page_size,
    )


# --- Ubicación en calendario / Gantt ---

def bucket_key(carga: Carga) -> str:
    """
    Una carga NEW siempre está pendiente de triaje, aunque la sincronización le
    haya puesto una fecha provisional. El resto se agrupa por el día de carga.
    """
    if carga.state_id == OrderState.NEW:
        return UNSCHEDULED
    if carga.scheduled_load_at is not None:
        return carga.scheduled_load_at.strftime("%Y-%m-%d")
    return UNSCHEDULED


def bucket_cargas(cargas: Iterable[Carga]) -> Dict[str, List[Carga]]:
    """Agrupa por bucket: primero 'unscheduled' y luego los días en orden ascendente."""
    buckets: Dict[str, List[Carga]] = {}
    for carga in cargas:
        buckets.setdefault(bucket_key(carga), []).append(carga)

    ordered = {UNSCHEDULED: buckets.pop(UNSCHEDULED, [])}
    for day in sorted(buckets):
        ordered[day] = buckets[day]
    return ordered

# src/application/erp_parser.py
"""
Parser explícito de los registros de Primavera.

El ERP es un sistema externo sin contrato tipado: los campos pueden faltar,
venir vacíos o cambiar de forma. En lugar de confiar en la presencia de los
campos, cada registro se convierte en un ParseResult etiquetado.
"""
import logging
from datetime import datetime
from typing import Any, Optional, List, Tuple

from dateutil import parser as date_parser

from src.domain.entities import (
    Carga, DedupKey, ExternalOrder, MappingIssue, OrderState, ParsedOrder, ParseResult,
)
from src.domain.reference_data import DEFAULT_COUNTRY_ID, country_id_for_code, service_id_for_erp_name

logger = logging.getLogger(__name__)

# Campos de texto del ERP -> atributo de la entidad Carga
TEXT_FIELD_MAP = {
    "ID": "external_ref",
    "Cliente": "client",
    "CondicoesdePagamento": "payment_terms",
    "ContactoParaEntrega": "delivery_contacts",
    "EncomendadoCliente": "client_order_ref",
    "EncomendaPrimavera": "erp_order_ref",
    "MercadoriaaEntregar": "merchandise",
    "MercadoriaQueFaltaEntregar": "merchandise_pending",
    "DataEntregaPrevista": "delivery_deadline_text",
    "Projeto": "project",
    "LocaldeEntrega": "delivery_location",
}
COUNTRY_FIELD = "Pais"
SERVICES_FIELD = "ServicosaRealizar"
ORDER_DATE_FIELD = "DatadaEncomenda"


class _RejectedField(Exception):
    def __init__(self, field: str, value: Any):
        super().__init__(f"Valor no escalar en '{field}': {type(value).__name__}")
        self.field = field


def placeholder_load_date(now: datetime) -> datetime:
    """31 de diciembre del año en curso a las 23:59: marca 'pendiente de triaje'."""
    return datetime(now.year, 12, 31, 23, 59, 0)


def _text(record: ExternalOrder, key: str) -> Optional[str]:
    """Lee un campo de texto. Vacío -> None; números -> str; estructuras -> rechazo."""
    value = record.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or isinstance(value, (dict, list, tuple)):
        raise _RejectedField(key, value)
    if not isinstance(value, str):
        value = str(value)
    return value if value.strip() else None


def parse_services(raw: Optional[str]) -> Tuple[List[int], List[str]]:
    """
    Separa la lista de servicios del ERP (texto libre separado por comas).
    Retorna (ids reconocidos, tokens descartados). Los tokens desconocidos no son error.
    """
    if not raw:
        return [], []

    service_ids: List[int] = []
    dropped: List[str] = []
    for token in raw.split(","):
        name = token.strip()
        if not name:
            continue
        service_id = service_id_for_erp_name(name)
        if service_id is None:
            dropped.append(name)
        elif service_id not in service_ids:
            service_ids.append(service_id)
    return service_ids, dropped


def _parse_order_date(raw: Optional[str], now: datetime) -> Tuple[datetime, Optional[MappingIssue]]:
    if raw is None:
        return now, None
    try:
        parsed = date_parser.parse(raw)
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone().replace(tzinfo=None)
    except (ValueError, OverflowError):
        return now, MappingIssue(ORDER_DATE_FIELD, f"Fecha de encomienda inválida: {raw!r}")
    return parsed, None


def parse_external_order(record: Any, now: Optional[datetime] = None) -> ParseResult:
    """
    Convierte un registro del ERP en una carga NEW lista para insertar.

    - País desconocido: se usa el primer mercado (aviso, el registro se inserta).
    - Servicios desconocidos: se descartan en silencio.
    - Registro que no es un objeto o con campos estructurados: error, se descarta.
    """
    now = now or datetime.now()

    if not isinstance(record, dict):
        return ParseResult.failure(
            MappingIssue("record", f"Registro inválido: se esperaba un objeto, llegó {type(record).__name__}", "error")
        )

    try:
        values = {attr: _text(record, key) for key, attr in TEXT_FIELD_MAP.items()}
        country_code = _text(record, COUNTRY_FIELD)
        services_raw = _text(record, SERVICES_FIELD)
        order_date_raw = _text(record, ORDER_DATE_FIELD)
    except _RejectedField as e:
        return ParseResult.failure(MappingIssue(e.field, str(e), "error"))

    warnings: List[MappingIssue] = []

    country_id = country_id_for_code(country_code)
    if country_id is None:
        country_id = DEFAULT_COUNTRY_ID
        warnings.append(MappingIssue(
            COUNTRY_FIELD, f"País no mapeado {country_code!r}; se asigna el mercado por defecto."
        ))

    created_at, date_issue = _parse_order_date(order_date_raw, now)
    if date_issue:
        warnings.append(date_issue)

    service_ids, dropped = parse_services(services_raw)
    if dropped:
        logger.debug(f"Servicios del ERP descartados para {values['external_ref']}: {dropped}")

    carga = Carga(
        id=None,
        country_id=country_id,
        state_id=OrderState.NEW,
        created_at=created_at,
        scheduled_load_at=placeholder_load_date(now),
        services=service_ids,
        from_erp=True,
        **values,
    )
    parsed = ParsedOrder(carga=carga, dedup_key=DedupKey.for_carga(carga), dropped_services=dropped)
    return ParseResult.success(parsed, warnings)

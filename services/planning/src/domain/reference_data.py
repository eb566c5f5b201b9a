# src/domain/reference_data.py
"""
Tablas de referencia (lookup) del servicio de planeamiento.

Los IDs coinciden con los de las tablas countries, states y service_types
de resources/insert_data.sql. Son datos estáticos: ningún módulo los modifica.
"""
from typing import Dict, Optional

# Mercados (countryId -> código de mercado). El primer mercado es el de fallback
# cuando el ERP envía un país que no conocemos.
MARKET_MAP: Dict[int, str] = {
    1: "PT",
    2: "SP",
    3: "FR",
    4: "INT",
}
MARKET_CODE_TO_ID: Dict[str, int] = {code: country_id for country_id, code in MARKET_MAP.items()}
DEFAULT_COUNTRY_ID = min(MARKET_MAP)

# Estados de la carga (Regla de Negocio Central)
ORDER_STATE_MAP: Dict[int, Dict[str, str]] = {
    1: {"code": "NEW", "name": "NOVA"},
    2: {"code": "TO_DEFINE", "name": "A DEFINIR"},
    3: {"code": "SCHEDULED", "name": "AGENDADA"},
    4: {"code": "COMPLETED", "name": "REALIZADA"},
}

# Valores especiales del filtro de estado
STATE_FILTER_ACTIVE = 0
STATE_FILTER_ALL = -1

# Servicios adicionales. El ID 1 ("Nenhum") existe en la tabla del ERP pero no es
# un servicio real, por eso no forma parte del mapa.
SERVICE_MAP: Dict[int, Dict[str, str]] = {
    2: {"code": "TRANSPORT", "name": "Transporte"},
    3: {"code": "INSTALLATION", "name": "Instalação"},
    4: {"code": "CIVIL_WORKS", "name": "Obra civil"},
    5: {"code": "ACCESS_SYSTEM", "name": "Sotkis access"},
    6: {"code": "LEVEL_SYSTEM", "name": "Sotkis level"},
    7: {"code": "CARE_PLAN", "name": "Sotcare"},
}
SERVICE_CODE_TO_ID: Dict[str, int] = {info["code"]: service_id for service_id, info in SERVICE_MAP.items()}

# Nombres tal como vienen en "ServicosaRealizar" del ERP Primavera
ERP_SERVICE_NAME_TO_ID: Dict[str, int] = {info["name"]: service_id for service_id, info in SERVICE_MAP.items()}


def country_id_for_code(code: Optional[str]) -> Optional[int]:
    """Devuelve el countryId de un código de mercado, o None si no existe."""
    if code is None:
        return None
    return MARKET_CODE_TO_ID.get(code.strip().upper())


def service_id_for_erp_name(name: str) -> Optional[int]:
    """Busca un servicio por el nombre usado en el ERP (comparación exacta tras trim)."""
    return ERP_SERVICE_NAME_TO_ID.get(name.strip())

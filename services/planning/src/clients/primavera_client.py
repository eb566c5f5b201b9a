"""Cliente HTTP para la WebAPI del ERP Primavera."""

import logging
import requests
from typing import List, Dict, Any

from src.domain.entities import ExternalOrder
from src.domain.exceptions import AuthError, FetchError
from src.domain.interfaces import ErpClient

logger = logging.getLogger(__name__)

LIST_ENDPOINT = "/Plataforma/Listas/CarregaLista/adhoc/"


class PrimaveraClient(ErpClient):
    """
    Cliente para obtener las cargas del ERP Primavera.

    No guarda el token entre llamadas: cada sincronización se autentica de
    nuevo para no depender de tokens caducados.
    """

    def __init__(self, config):
        self.base_url = config.ERP_BASE_URL.rstrip('/')
        self.token_path = config.ERP_TOKEN_PATH
        self.list_id = config.ERP_LIST_ID
        self.username = config.ERP_USERNAME
        self.password = config.ERP_PASSWORD
        self.company = config.ERP_COMPANY
        self.instance = config.ERP_INSTANCE
        self.line = config.ERP_LINE
        self.timeout = config.ERP_TIMEOUT
        self.verify_ssl = config.ERP_VERIFY_SSL

    @property
    def token_url(self) -> str:
        return f"{self.base_url}{self.token_path}"

    @property
    def list_url(self) -> str:
        return f"{self.base_url}{LIST_ENDPOINT}"

    def authenticate(self) -> str:
        """
        POST form-encoded con la cuenta de servicio contra el endpoint de token.
        Retorna el access_token; lanza AuthError si la respuesta no es exitosa.
        """
        data = {
            "username": self.username,
            "password": self.password,
            "company": self.company,
            "instance": self.instance,
            "line": self.line,
            "grant_type": "password",
        }
        try:
            response = requests.post(
                self.token_url,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
                verify=self.verify_ssl,
            )
        except requests.exceptions.RequestException as e:
            raise AuthError(f"No se pudo contactar el endpoint de token: {e}") from e

        if not response.ok:
            logger.error(f"Autenticación en Primavera rechazada ({response.status_code}): {response.text}")
            raise AuthError(
                f"Autenticación rechazada: {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise AuthError("Respuesta de token no es JSON válido.", status_code=response.status_code) from e

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise AuthError("Respuesta de token sin access_token.", status_code=response.status_code)
        return token

    def fetch_orders(self, credential: str) -> List[ExternalOrder]:
        """
        Obtiene el snapshot completo (sin paginación) de la lista configurada.
        Retorna la lista bajo la clave "Data"; lanza FetchError en cualquier fallo.
        """
        try:
            response = requests.get(
                self.list_url,
                params={"listId": self.list_id},
                headers={"Authorization": f"Bearer {credential}"},
                timeout=self.timeout,
                verify=self.verify_ssl,
            )
        except requests.exceptions.RequestException as e:
            raise FetchError(f"No se pudo contactar la lista de cargas: {e}") from e

        if not response.ok:
            raise FetchError(
                f"Lista de cargas respondió {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            payload: Dict[str, Any] = response.json()
        except ValueError as e:
            raise FetchError("La lista de cargas no es JSON válido.", status_code=response.status_code) from e

        data = payload.get("Data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise FetchError("Respuesta sin la lista 'Data'.", status_code=response.status_code)
        return data

# src/application/sync_erp_usecase.py
import logging
import threading
from datetime import datetime
from typing import Callable

from src.domain.entities import SyncResult
from src.domain.exceptions import AuthError, FetchError, RepositoryError
from src.domain.interfaces import CargaRepository, ErpClient
from src.application.erp_parser import parse_external_order

logger = logging.getLogger(__name__)

SYNC_ALREADY_RUNNING = "sync already running"


class SyncErpOrdersUseCase:
    """
    Caso de uso: importar las cargas nuevas del ERP Primavera.

    El ERP devuelve su historial completo en cada llamada, así que cada registro
    se compara contra la clave de deduplicación antes de insertarlo. Repetir la
    ejecución con el mismo snapshot no inserta nada nuevo.

    La sincronización nunca actualiza ni elimina cargas existentes.
    """

    def __init__(self, erp_client: ErpClient, carga_repository: CargaRepository,
                 clock: Callable[[], datetime] = datetime.now):
        self.erp_client = erp_client
        self.repository = carga_repository
        self.clock = clock
        # Una sola ejecución a la vez por proceso: la comprobación + inserción no es atómica.
        self._lock = threading.Lock()

    def execute(self) -> SyncResult:
        if not self._lock.acquire(blocking=False):
            logger.warning("[SYNC] Ya hay una sincronización en curso; se ignora la petición.")
            return SyncResult(error=SYNC_ALREADY_RUNNING)
        try:
            return self._run()
        finally:
            self._lock.release()

    def _run(self) -> SyncResult:
        logger.info("[SYNC] Iniciando sincronización con Primavera...")

        # 1. Autenticar (fatal: no se ha leído nada todavía)
        try:
            credential = self.erp_client.authenticate()
        except AuthError as e:
            logger.error(f"[SYNC] Falló la autenticación: {e}")
            return SyncResult(error=f"Falló la autenticación con Primavera: {e}")

        # 2. Obtener el snapshot completo (fatal)
        try:
            records = self.erp_client.fetch_orders(credential)
        except FetchError as e:
            logger.error(f"[SYNC] Falló la obtención de cargas: {e}")
            return SyncResult(error=f"Falló la obtención de cargas de Primavera: {e}")

        logger.info(f"[SYNC] {len(records)} registros recibidos del ERP.")

        # 3. Procesar cada registro de forma independiente
        result = SyncResult()
        now = self.clock()
        for position, record in enumerate(records, start=1):
            try:
                self._process_record(position, record, now, result)
            except Exception as e:
                # Un registro malo no debe bloquear al resto del lote
                logger.error(f"[SYNC] Error inesperado en el registro #{position}: {e}", exc_info=True)
                result.failed_count += 1

        logger.info(
            f"[SYNC] Completado. Insertadas: {result.inserted_count}, "
            f"ya existentes: {result.skipped_count}, con error: {result.failed_count}."
        )
        return result

    def _process_record(self, position: int, record, now: datetime, result: SyncResult) -> None:
        parsed_result = parse_external_order(record, now)
        if not parsed_result.ok:
            issue = parsed_result.issue
            logger.warning(f"[SYNC] Registro #{position} descartado ({issue.field}): {issue.message}")
            result.failed_count += 1
            return

        parsed = parsed_result.parsed
        external_ref = parsed.carga.external_ref

        try:
            if self.repository.find_by_dedup_key(parsed.dedup_key) is not None:
                result.skipped_count += 1
                return

            created = self.repository.insert_carga(parsed.carga)
        except RepositoryError as e:
            logger.error(f"[SYNC] Error de persistencia en el registro #{position} ({external_ref}): {e}",
                         exc_info=True)
            result.failed_count += 1
            return

        result.inserted_count += 1
        # Los avisos solo se registran al insertar; los registros ya importados no se repiten
        for warning in parsed_result.warnings:
            logger.warning(f"[SYNC] Registro #{position} ({external_ref}) - {warning.field}: {warning.message}")
        logger.debug(f"[SYNC] Registro #{position} ({external_ref}) insertado como carga {created.id}.")

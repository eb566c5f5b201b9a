import logging
from typing import List, Dict, Any, Optional

import psycopg2
from psycopg2 import errors, extras

from src.domain.interfaces import CargaRepository
from src.domain.entities import Carga, DedupKey
from src.domain.exceptions import RepositoryError, DuplicateCargaError

logger = logging.getLogger(__name__)

CARGA_COLUMNS = [
    "carga_id", "external_ref", "client", "country_id", "client_order_ref", "erp_order_ref",
    "project", "state_id", "scheduled_load_at", "delivery_contacts", "merchandise",
    "payment_terms", "merchandise_pending", "delivery_location", "carrier", "transport_cost",
    "delivery_deadline_text", "production_start", "production_end", "created_at",
    "from_erp",
]
# carga_id, created_at y el origen nunca se modifican después de la creación
UPDATABLE_COLUMNS = set(CARGA_COLUMNS) - {"carga_id", "created_at", "from_erp"}

SELECT_CARGAS_SQL = f"SELECT {', '.join(CARGA_COLUMNS)} FROM planning.cargas"

INSERT_SERVICE_SQL = """
    INSERT INTO planning.carga_services (carga_id, service_id)
    VALUES (%s, %s);
"""


def _row_to_carga(row: Dict[str, Any], services: List[int]) -> Carga:
    values = dict(row)
    carga_id = values.pop("carga_id")
    return Carga(id=carga_id, services=services, **values)


class PgCargaRepository(CargaRepository):
    """
    Implementación concreta que se conecta a PostgreSQL para obtener y
    persistir Cargas y sus servicios usando psycopg2.
    """

    def __init__(self, db_pool):
        self.db = db_pool

    def _services_by_carga(self, cursor, carga_ids: Optional[List[int]] = None) -> Dict[int, List[int]]:
        if carga_ids is None:
            cursor.execute("SELECT carga_id, service_id FROM planning.carga_services ORDER BY carga_id, service_id;")
        else:
            cursor.execute(
                "SELECT carga_id, service_id FROM planning.carga_services "
                "WHERE carga_id = ANY(%s) ORDER BY carga_id, service_id;",
                (carga_ids,)
            )
        services: Dict[int, List[int]] = {}
        for carga_id, service_id in cursor.fetchall():
            services.setdefault(carga_id, []).append(service_id)
        return services

    def list_cargas(self) -> List[Carga]:
        """Recupera todas las cargas con sus servicios (dos consultas, agrupadas en memoria)."""
        conn = None
        try:
            conn = self.db.get_connection()
            cursor = conn.cursor()

            cursor.execute(f"{SELECT_CARGAS_SQL} ORDER BY scheduled_load_at DESC, carga_id DESC;")
            column_names = [desc[0] for desc in cursor.description]
            rows = [dict(zip(column_names, row)) for row in cursor.fetchall()]

            services = self._services_by_carga(cursor)
            return [_row_to_carga(row, services.get(row["carga_id"], [])) for row in rows]

        except psycopg2.Error as e:
            logger.error(f"ERROR de base de datos al listar cargas: {e}")
            if conn:
                conn.rollback()
            raise RepositoryError("Database error during cargas retrieval.") from e
        finally:
            if conn:
                self.db.release_connection(conn)

    def get_carga(self, carga_id: int) -> Optional[Carga]:
        conn = None
        try:
            conn = self.db.get_connection()
            cursor = conn.cursor()

            cursor.execute(f"{SELECT_CARGAS_SQL} WHERE carga_id = %s;", (carga_id,))
            row_tuple = cursor.fetchone()
            if row_tuple is None:
                return None

            column_names = [desc[0] for desc in cursor.description]
            row = dict(zip(column_names, row_tuple))
            services = self._services_by_carga(cursor, [carga_id])
            return _row_to_carga(row, services.get(carga_id, []))

        except psycopg2.Error as e:
            logger.error(f"ERROR de base de datos al obtener la carga {carga_id}: {e}")
            if conn:
                conn.rollback()
            raise RepositoryError("Database error during carga retrieval.") from e
        finally:
            if conn:
                self.db.release_connection(conn)

    def find_by_dedup_key(self, key: DedupKey) -> Optional[int]:
        """
        Busca una carga con la misma clave compuesta. Las expresiones coinciden
        con las del índice único parcial ux_cargas_erp_dedup_key: las cargas
        creadas a mano nunca coinciden.
        """
        conn = None
        try:
            conn = self.db.get_connection()
            cursor = conn.cursor()

            cursor.execute(
                """
                SELECT carga_id FROM planning.cargas
                WHERE from_erp
                  AND COALESCE(external_ref, '') = %s
                  AND md5(COALESCE(client, '')) = md5(%s)
                  AND md5(COALESCE(merchandise, '')) = md5(%s)
                  AND md5(COALESCE(delivery_location, '')) = md5(%s)
                LIMIT 1;
                """,
                (key.external_ref, key.client, key.merchandise, key.delivery_location)
            )
            row = cursor.fetchone()
            return row[0] if row else None

        except psycopg2.Error as e:
            logger.error(f"ERROR de base de datos al buscar la clave {key.external_ref}: {e}")
            if conn:
                conn.rollback()
            raise RepositoryError("Database error during dedup lookup.") from e
        finally:
            if conn:
                self.db.release_connection(conn)

    def insert_carga(self, carga: Carga) -> Carga:
        """
        Inserta una nueva carga (cabecera y servicios) en una transacción.
        """
        conn = None
        try:
            conn = self.db.get_connection()
            cursor = conn.cursor()

            columns = [c for c in CARGA_COLUMNS if c != "carga_id"]
            placeholders = ", ".join(["%s"] * len(columns))
            cursor.execute(
                f"INSERT INTO planning.cargas ({', '.join(columns)}) VALUES ({placeholders}) RETURNING carga_id;",
                tuple(getattr(carga, column) for column in columns)
            )
            carga.id = cursor.fetchone()[0]

            extras.execute_batch(cursor, INSERT_SERVICE_SQL, [(carga.id, s) for s in carga.services])

            conn.commit()
            return carga

        except errors.UniqueViolation as e:
            if conn:
                conn.rollback()
            raise DuplicateCargaError(f"Carga duplicada para la clave {carga.external_ref!r}.") from e
        except psycopg2.Error as e:
            logger.error(f"ERROR de base de datos al insertar carga: {e}")
            if conn:
                conn.rollback()
            raise RepositoryError("Database error during carga insertion.") from e
        finally:
            if conn:
                self.db.release_connection(conn)

    def update_carga(self, carga_id: int, changes: Dict[str, Any]) -> bool:
        unknown = set(changes) - UPDATABLE_COLUMNS - {"services"}
        if unknown:
            raise ValueError(f"Campos no actualizables: {sorted(unknown)}")

        conn = None
        try:
            conn = self.db.get_connection()
            cursor = conn.cursor()

            cursor.execute("SELECT carga_id FROM planning.cargas WHERE carga_id = %s FOR UPDATE;", (carga_id,))
            if cursor.fetchone() is None:
                conn.rollback()
                return False

            fields = [c for c in changes if c != "services"]
            if fields:
                # Los nombres vienen de UPDATABLE_COLUMNS, nunca del cliente
                set_clause = ", ".join(f"{c} = %s" for c in fields)
                cursor.execute(
                    f"UPDATE planning.cargas SET {set_clause} WHERE carga_id = %s;",
                    tuple(changes[c] for c in fields) + (carga_id,)
                )

            if "services" in changes:
                cursor.execute("DELETE FROM planning.carga_services WHERE carga_id = %s;", (carga_id,))
                extras.execute_batch(cursor, INSERT_SERVICE_SQL, [(carga_id, s) for s in changes["services"]])

            conn.commit()
            return True

        except errors.UniqueViolation as e:
            if conn:
                conn.rollback()
            raise DuplicateCargaError(f"La actualización de la carga {carga_id} duplica otra carga.") from e
        except psycopg2.Error as e:
            logger.error(f"ERROR de base de datos al actualizar la carga {carga_id}: {e}")
            if conn:
                conn.rollback()
            raise RepositoryError("Database error during carga update.") from e
        finally:
            if conn:
                self.db.release_connection(conn)

    def delete_carga(self, carga_id: int) -> bool:
        """Elimina los servicios asociados primero y después la carga, en la misma transacción."""
        conn = None
        try:
            conn = self.db.get_connection()
            cursor = conn.cursor()

            cursor.execute("DELETE FROM planning.carga_services WHERE carga_id = %s;", (carga_id,))
            cursor.execute("DELETE FROM planning.cargas WHERE carga_id = %s;", (carga_id,))
            deleted = cursor.rowcount > 0

            conn.commit()
            return deleted

        except psycopg2.Error as e:
            logger.error(f"ERROR de base de datos al eliminar la carga {carga_id}: {e}")
            if conn:
                conn.rollback()
            raise RepositoryError("Database error during carga deletion.") from e
        finally:
            if conn:
                self.db.release_connection(conn)

    def count_by_state(self, year: Optional[int] = None) -> Dict[int, int]:
        conn = None
        try:
            conn = self.db.get_connection()
            cursor = conn.cursor()

            if year is None:
                cursor.execute("SELECT state_id, COUNT(*) FROM planning.cargas GROUP BY state_id;")
            else:
                # Las cargas sin fecha (pendientes de agendar) cuentan en cualquier año
                cursor.execute(
                    """
                    SELECT state_id, COUNT(*) FROM planning.cargas
                    WHERE EXTRACT(YEAR FROM scheduled_load_at) = %s OR scheduled_load_at IS NULL
                    GROUP BY state_id;
                    """,
                    (year,)
                )
            return {state_id: count for state_id, count in cursor.fetchall()}

        except psycopg2.Error as e:
            logger.error(f"ERROR de base de datos al contar cargas: {e}")
            if conn:
                conn.rollback()
            raise RepositoryError("Database error during cargas count.") from e
        finally:
            if conn:
                self.db.release_connection(conn)

# src/infrastructure/persistence/db_connector.py
import logging
import psycopg2
from psycopg2 import pool

logger = logging.getLogger(__name__)


class DatabasePool:
    """
    Pool de conexiones de PostgreSQL.

    Se construye una vez en create_app() y se inyecta en el repositorio y en el
    inicializador; no hay un pool global a nivel de módulo.
    """

    def __init__(self, config):
        self.config = config
        self._pool = None

    def init_pool(self):
        """Inicializa el pool de conexiones (idempotente)."""
        if self._pool is not None:
            return
        try:
            self._pool = pool.ThreadedConnectionPool(
                minconn=self.config.DB_POOL_MIN,
                maxconn=self.config.DB_POOL_MAX,
                host=self.config.DB_HOST,
                port=self.config.DB_PORT,
                database=self.config.DB_NAME,
                user=self.config.DB_USER,
                password=self.config.DB_PASSWORD
            )
            logger.info("Pool de conexiones a la base de datos inicializado.")
        except psycopg2.Error as e:
            logger.error(f"No se pudo conectar a la base de datos. {e}")
            raise ConnectionError("Fallo en la conexión inicial a la base de datos.") from e

    def get_connection(self):
        """Obtiene una conexión del pool."""
        if self._pool is None:
            raise ConnectionError("El pool de la base de datos no está inicializado.")
        return self._pool.getconn()

    def release_connection(self, conn):
        """Devuelve una conexión al pool."""
        if self._pool:
            self._pool.putconn(conn)

    def close(self):
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None

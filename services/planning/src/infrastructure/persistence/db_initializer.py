# src/infrastructure/persistence/db_initializer.py
import os
import logging
import psycopg2

logger = logging.getLogger(__name__)

# Rutas a los archivos SQL
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
RESOURCES_DIR = os.path.join(BASE_DIR, 'resources')
SCHEMA_FILE = os.path.join(RESOURCES_DIR, 'schema.sql')
INSERT_DATA_FILE = os.path.join(RESOURCES_DIR, 'insert_data.sql')


def _read_sql_file(filepath: str) -> str:
    """Lee el contenido de un archivo SQL."""
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            return f.read()
    except FileNotFoundError:
        logger.error(f"Archivo SQL no encontrado: {filepath}")
        return ""


def initialize_database(db_pool, config) -> bool:
    """
    Crea el esquema (tablas, índice único de deduplicación) y carga las tablas
    de referencia. Los scripts son idempotentes (IF NOT EXISTS / ON CONFLICT).
    Retorna True si la inicialización se ejecutó completa.
    """
    if not config.RUN_DB_INIT_ON_STARTUP:
        logger.info("Inicialización de la base de datos omitida por configuración.")
        return False

    schema_sql = _read_sql_file(SCHEMA_FILE)
    reference_sql = _read_sql_file(INSERT_DATA_FILE)

    if not schema_sql:
        logger.error("El script de esquema (schema.sql) está vacío o no se encontró. Abortando inicialización.")
        return False

    conn = None
    try:
        conn = db_pool.get_connection()
        cursor = conn.cursor()

        logger.info("Ejecutando script de creación de esquema...")
        cursor.execute(schema_sql)

        if reference_sql:
            logger.info("Cargando datos de referencia (países, estados, servicios)...")
            cursor.execute(reference_sql)

        conn.commit()
        return True

    except psycopg2.Error as e:
        logger.error(f"Fallo durante la inicialización de la base de datos: {e}")
        if conn:
            conn.rollback()  # Asegura que no queden cambios parciales
        return False
    except ConnectionError as e:
        logger.error(f"{e}")
        return False
    finally:
        if conn:
            db_pool.release_connection(conn)

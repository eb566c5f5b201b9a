# config.py
import os


class Config:
    """Clase base de configuración, con variables de entorno para DB y ERP."""
    # Configuración de la Base de Datos (PostgreSQL)
    DB_HOST = os.environ.get('DB_HOST', 'host.docker.internal')
    DB_PORT = os.environ.get('DB_PORT', '5432')
    DB_NAME = os.environ.get('DB_NAME', 'planning_db')
    DB_USER = os.environ.get('DB_USER', 'postgres')
    DB_PASSWORD = os.environ.get('DB_PASSWORD', 'postgres')
    DB_POOL_MIN = int(os.environ.get('DB_POOL_MIN', '1'))
    DB_POOL_MAX = int(os.environ.get('DB_POOL_MAX', '10'))
    # Parámetros para la inicialización de la BD
    RUN_DB_INIT_ON_STARTUP = os.environ.get('RUN_DB_INIT_ON_STARTUP', 'False').lower() == 'true'

    # ERP Primavera (WebAPI)
    ERP_BASE_URL = os.environ.get('ERP_BASE_URL', 'https://localhost:443/WebAPI')
    ERP_TOKEN_PATH = os.environ.get('ERP_TOKEN_PATH', '/token')
    ERP_LIST_ID = os.environ.get('ERP_LIST_ID', '')
    ERP_USERNAME = os.environ.get('ERP_USERNAME', '')
    ERP_PASSWORD = os.environ.get('ERP_PASSWORD', '')
    ERP_COMPANY = os.environ.get('ERP_COMPANY', '')
    ERP_INSTANCE = os.environ.get('ERP_INSTANCE', 'default')
    ERP_LINE = os.environ.get('ERP_LINE', 'professional')
    ERP_TIMEOUT = int(os.environ.get('ERP_TIMEOUT', '30'))
    # Las instancias internas de Primavera suelen usar certificados autofirmados
    ERP_VERIFY_SSL = os.environ.get('ERP_VERIFY_SSL', 'True').lower() == 'true'

    DEFAULT_PAGE_SIZE = int(os.environ.get('DEFAULT_PAGE_SIZE', '48'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

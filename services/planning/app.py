# app.py
import logging

from flask import Flask, jsonify
from dotenv import load_dotenv  # Necesario para cargar variables de entorno
from flask_cors import CORS

# Cargar variables de entorno del archivo .env (si existe) antes de leer Config
load_dotenv()

from config import Config
from src.infrastructure.web.flask_routes import create_api_blueprint
from src.application.use_cases import (
    ListCargasUseCase, GetCargaUseCase, CreateCargaUseCase, UpdateCargaUseCase, DeleteCargaUseCase,
    ScheduleCargaUseCase, CountCargasUseCase, GetPlanningBucketsUseCase, GetLookupUseCase,
)
from src.application.sync_erp_usecase import SyncErpOrdersUseCase
from src.clients.primavera_client import PrimaveraClient
from src.infrastructure.persistence.pg_repository import PgCargaRepository
from src.infrastructure.persistence.db_connector import DatabasePool
from src.infrastructure.persistence.db_initializer import initialize_database

logger = logging.getLogger(__name__)


def create_app(config=Config, db_pool=None, erp_client=None):
    """
    Crea, configura y cablea la aplicación Flask siguiendo la Arquitectura Limpia.
    El pool y el cliente del ERP se pueden inyectar (tests); si no, se crean desde Config.
    """
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    app = Flask(__name__)
    app.config.from_object(config)

    # --- INICIALIZACIÓN DE LA BASE DE DATOS ---
    if db_pool is None:
        db_pool = DatabasePool(config)
        try:
            db_pool.init_pool()
            initialize_database(db_pool, config)
        except ConnectionError as e:
            # El servicio arranca igual; las peticiones que usen la BD responderán 500
            logger.critical(f"Fallo al inicializar la BD: {e}")

    # --- CABLEADO DE DEPENDENCIAS (Dependency Injection - DI) ---

    # 1. Infraestructura (PostgreSQL y ERP Primavera)
    carga_repository = PgCargaRepository(db_pool)
    if erp_client is None:
        erp_client = PrimaveraClient(config)

    # 2. Capa de Aplicación (Use Cases)
    sync_case = SyncErpOrdersUseCase(erp_client=erp_client, carga_repository=carga_repository)

    # Configurar CORS
    CORS(app, resources={
        r"/*": {
            "origins": "*",
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "X-Requested-With"]
        }
    })

    # 3. Capa de Presentación (Web)
    api_bp = create_api_blueprint(
        ListCargasUseCase(carga_repository),
        GetCargaUseCase(carga_repository),
        CreateCargaUseCase(carga_repository),
        UpdateCargaUseCase(carga_repository),
        DeleteCargaUseCase(carga_repository),
        ScheduleCargaUseCase(carga_repository),
        CountCargasUseCase(carga_repository),
        GetPlanningBucketsUseCase(carga_repository),
        GetLookupUseCase(),
        sync_case,
        default_page_size=config.DEFAULT_PAGE_SIZE
    )
    app.register_blueprint(api_bp, url_prefix='/cargas')

    # --- Ruta de control ---
    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok'})
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=8080, debug=False)

from flask import Blueprint, jsonify, request, current_app
from dateutil import parser as date_parser

from src.application.use_cases import (
    ListCargasUseCase, GetCargaUseCase, CreateCargaUseCase, UpdateCargaUseCase, DeleteCargaUseCase,
    ScheduleCargaUseCase, CountCargasUseCase, GetPlanningBucketsUseCase, GetLookupUseCase, format_carga,
)
from src.application.sync_erp_usecase import SyncErpOrdersUseCase, SYNC_ALREADY_RUNNING
from src.domain.exceptions import CargaNotFoundError
from src.domain.query import OrderFilters, SortSpec, PageRequest, DEFAULT_PAGE_SIZE


def _int_arg(name, default=None):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"El parámetro '{name}' debe ser un entero.")


def _date_arg(name):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return date_parser.parse(raw).date()
    except (ValueError, OverflowError):
        raise ValueError(f"El parámetro '{name}' no es una fecha válida.")


def _filters_from_request() -> OrderFilters:
    return OrderFilters(
        search=request.args.get("search") or None,
        country_id=_int_arg("country_id"),
        state_id=_int_arg("state_id"),
        date_from=_date_arg("date_from"),
        date_to=_date_arg("date_to"),
        year=_int_arg("year"),
    )


def create_api_blueprint(
    list_case: ListCargasUseCase,
    get_case: GetCargaUseCase,
    create_case: CreateCargaUseCase,
    update_case: UpdateCargaUseCase,
    delete_case: DeleteCargaUseCase,
    schedule_case: ScheduleCargaUseCase,
    count_case: CountCargasUseCase,
    planning_case: GetPlanningBucketsUseCase,
    lookup_case: GetLookupUseCase,
    sync_case: SyncErpOrdersUseCase,
    default_page_size: int = DEFAULT_PAGE_SIZE
):
    """
    Función de fábrica para inyectar los Casos de Uso en el Blueprint.
    Crea un nuevo Blueprint en cada llamada para evitar conflictos en tests.
    """
    api_bp = Blueprint('api', __name__)

    @api_bp.errorhandler(ValueError)
    def handle_value_error(e):
        return jsonify({"error": str(e)}), 400

    @api_bp.errorhandler(CargaNotFoundError)
    def handle_not_found(e):
        return jsonify({"error": str(e)}), 404

    @api_bp.route('/', methods=['GET'])
    def list_cargas():
        """
        Lista de cargas con filtros, ordenamiento y paginación (por defecto 48 por página).
        """
        filters = _filters_from_request()
        sort = SortSpec(
            key=request.args.get("sort", "scheduled_load_at"),
            direction=request.args.get("direction", "asc"),
        )
        page = PageRequest(
            page_index=_int_arg("page_index", 0),
            page_size=_int_arg("page_size", default_page_size),
        )
        try:
            result = list_case.execute(filters, sort, page)
            return jsonify(result.to_dict()), 200
        except Exception as e:
            current_app.logger.error(f"Error al listar cargas: {e}")
            return jsonify({"message": "Error interno del servicio de planificación al listar cargas."}), 500

    @api_bp.route('/<int:carga_id>', methods=['GET'])
    def get_carga(carga_id):
        try:
            return jsonify({"carga": get_case.execute(carga_id)}), 200
        except CargaNotFoundError:
            raise
        except Exception as e:
            current_app.logger.error(f"Error al consultar la carga {carga_id}: {e}")
            return jsonify({"message": "Error interno del servicio de planificación al obtener la carga."}), 500

    @api_bp.route('/', methods=['POST'])
    def create_carga():
        data = request.get_json(silent=True)
        if data is None:
            return jsonify({"error": "Se requiere un cuerpo JSON."}), 400
        try:
            carga = create_case.execute(data)
        except ValueError:
            raise
        except Exception as e:
            current_app.logger.error(f"Error al crear la carga: {e}")
            return jsonify({"message": "Error interno del servicio de planificación al crear la carga."}), 500

        return jsonify({
            "id": carga.id,
            "carga": format_carga(carga),
            "message": "Carga creada correctamente"
        }), 201

    @api_bp.route('/<int:carga_id>', methods=['PUT'])
    def update_carga(carga_id):
        data = request.get_json(silent=True)
        if data is None:
            return jsonify({"error": "Se requiere un cuerpo JSON."}), 400
        try:
            update_case.execute(carga_id, data)
            return jsonify({"message": "Carga actualizada correctamente"}), 200
        except (ValueError, CargaNotFoundError):
            raise
        except Exception as e:
            current_app.logger.error(f"Error al actualizar la carga {carga_id}: {e}")
            return jsonify({"message": "Error interno del servicio de planificación al actualizar la carga."}), 500

    @api_bp.route('/<int:carga_id>/schedule', methods=['PUT'])
    def schedule_carga(carga_id):
        """Escrituras del calendario/Gantt: fecha de carga y ventana de producción."""
        data = request.get_json(silent=True)
        if data is None:
            return jsonify({"error": "Se requiere un cuerpo JSON."}), 400
        try:
            return jsonify({"carga": schedule_case.execute(carga_id, data)}), 200
        except (ValueError, CargaNotFoundError):
            raise
        except Exception as e:
            current_app.logger.error(f"Error al planificar la carga {carga_id}: {e}")
            return jsonify({"message": "Error interno del servicio de planificación al planificar la carga."}), 500

    @api_bp.route('/<int:carga_id>', methods=['DELETE'])
    def delete_carga(carga_id):
        try:
            delete_case.execute(carga_id)
            return jsonify({"message": "Carga eliminada correctamente"}), 200
        except CargaNotFoundError:
            raise
        except Exception as e:
            current_app.logger.error(f"Error al eliminar la carga {carga_id}: {e}")
            return jsonify({"message": "Error interno del servicio de planificación al eliminar la carga."}), 500

    @api_bp.route('/count', methods=['GET'])
    def count_cargas():
        year = _int_arg("year")
        try:
            return jsonify(count_case.execute(year)), 200
        except Exception as e:
            current_app.logger.error(f"Error al contar cargas: {e}")
            return jsonify({"message": "Error interno del servicio de planificación al contar cargas."}), 500

    @api_bp.route('/planning', methods=['GET'])
    def planning_buckets():
        """
        Cargas agrupadas por día para el calendario/Gantt. 'unscheduled' siempre va primero.
        """
        filters = _filters_from_request()
        try:
            buckets = planning_case.execute(filters)
            return jsonify({"buckets": [{"key": key, "cargas": items} for key, items in buckets.items()]}), 200
        except Exception as e:
            current_app.logger.error(f"Error al agrupar cargas por día: {e}")
            return jsonify({"message": "Error interno del servicio de planificación al obtener el calendario."}), 500

    @api_bp.route('/lookup', methods=['GET'])
    def lookup():
        return jsonify(lookup_case.execute()), 200

    @api_bp.route('/sync', methods=['POST'])
    def sync_erp():
        """
        Dispara la importación desde Primavera. Solo se ejecuta a petición del usuario.
        """
        result = sync_case.execute()
        if result.success:
            current_app.logger.info(
                f"Sincronización completada: {result.inserted_count} insertadas, "
                f"{result.skipped_count} omitidas, {result.failed_count} fallidas."
            )
            return jsonify(result.to_dict()), 200
        if result.error == SYNC_ALREADY_RUNNING:
            return jsonify(result.to_dict()), 409
        current_app.logger.error(f"Sincronización fallida: {result.error}")
        return jsonify(result.to_dict()), 502

    return api_bp

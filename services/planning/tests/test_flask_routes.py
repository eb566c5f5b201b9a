import unittest
import json
from unittest.mock import Mock
from datetime import date
from flask import Flask

# Importamos la función de fábrica desde la infraestructura
from src.infrastructure.web.flask_routes import create_api_blueprint
from src.application.sync_erp_usecase import SYNC_ALREADY_RUNNING
from src.domain.entities import Carga, SyncResult
from src.domain.exceptions import CargaNotFoundError, InvalidStateError
from src.domain.query import Page, UNSCHEDULED

MOCK_CARGA_DATA = {"id": 1, "client": "Cliente A", "state": "AGENDADA", "bucket": "2025-03-10"}


class TestFlaskRoutes(unittest.TestCase):
    """
    Clase para probar las rutas de Flask, asegurando que interactúan
    correctamente con los Casos de Uso (simulados con mocks).
    """

    def setUp(self):
        self.app = Flask(__name__)
        self.list_case = Mock()
        self.get_case = Mock()
        self.create_case = Mock()
        self.update_case = Mock()
        self.delete_case = Mock()
        self.schedule_case = Mock()
        self.count_case = Mock()
        self.planning_case = Mock()
        self.lookup_case = Mock()
        self.sync_case = Mock()

        self.app.register_blueprint(create_api_blueprint(
            self.list_case, self.get_case, self.create_case, self.update_case, self.delete_case,
            self.schedule_case, self.count_case, self.planning_case, self.lookup_case, self.sync_case
        ), url_prefix='/cargas')
        self.client = self.app.test_client()

    # --- GET /cargas/ ---

    def test_list_defaults(self):
        self.list_case.execute.return_value = Page([MOCK_CARGA_DATA], 1, 1, 0, 48)

        response = self.client.get('/cargas/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.data)["items"], [MOCK_CARGA_DATA])
        filters, sort, page = self.list_case.execute.call_args[0]
        self.assertIsNone(filters.state_id)
        self.assertEqual(sort.key, "scheduled_load_at")
        self.assertEqual(sort.direction, "asc")
        self.assertEqual(page.page_size, 48)

    def test_list_with_query_params(self):
        self.list_case.execute.return_value = Page([], 0, 0, 1, 20)

        response = self.client.get(
            '/cargas/?search=braga&country_id=2&state_id=-1&date_from=2025-01-01'
            '&sort=client&direction=desc&page_index=1&page_size=20'
        )

        self.assertEqual(response.status_code, 200)
        filters, sort, page = self.list_case.execute.call_args[0]
        self.assertEqual(filters.search, "braga")
        self.assertEqual(filters.country_id, 2)
        self.assertEqual(filters.state_id, -1)
        self.assertEqual(filters.date_from, date(2025, 1, 1))
        self.assertEqual((sort.key, sort.direction), ("client", "desc"))
        self.assertEqual((page.page_index, page.page_size), (1, 20))

    def test_list_invalid_params_return_400(self):
        for query in ('state_id=9', 'page_size=0', 'sort=password', 'country_id=PT', 'date_to=ayer'):
            response = self.client.get(f'/cargas/?{query}')
            self.assertEqual(response.status_code, 400, query)
        self.list_case.execute.assert_not_called()

    def test_list_internal_error(self):
        self.list_case.execute.side_effect = Exception("Simulated DB connection error")

        response = self.client.get('/cargas/')

        self.assertEqual(response.status_code, 500)
        self.assertIn("Error interno", json.loads(response.data)["message"])

    # --- GET/PUT/DELETE /cargas/<id> ---

    def test_get_carga(self):
        self.get_case.execute.return_value = MOCK_CARGA_DATA

        response = self.client.get('/cargas/1')

        self.get_case.execute.assert_called_once_with(1)
        self.assertEqual(json.loads(response.data), {"carga": MOCK_CARGA_DATA})

    def test_get_carga_not_found(self):
        self.get_case.execute.side_effect = CargaNotFoundError(99)

        response = self.client.get('/cargas/99')

        self.assertEqual(response.status_code, 404)

    def test_create_carga(self):
        self.create_case.execute.return_value = Carga(id=10, client="Cliente Manual", country_id=1)

        response = self.client.post('/cargas/', json={"client": "Cliente Manual", "country_id": 1})

        self.assertEqual(response.status_code, 201)
        data = json.loads(response.data)
        self.assertEqual(data["id"], 10)
        self.assertEqual(data["carga"]["state"], "NOVA")
        self.assertEqual(data["carga"]["bucket"], UNSCHEDULED)

    def test_create_carga_without_body(self):
        response = self.client.post('/cargas/', data="x", content_type="text/plain")
        self.assertEqual(response.status_code, 400)
        self.create_case.execute.assert_not_called()

    def test_create_carga_validation_error(self):
        self.create_case.execute.side_effect = InvalidStateError("Estado de carga desconocido: 9")

        response = self.client.post('/cargas/', json={"state_id": 9})

        self.assertEqual(response.status_code, 400)
        self.assertIn("Estado", json.loads(response.data)["error"])

    def test_update_carga(self):
        response = self.client.put('/cargas/5', json={"carrier": "DHL"})

        self.assertEqual(response.status_code, 200)
        self.update_case.execute.assert_called_once_with(5, {"carrier": "DHL"})

    def test_update_carga_not_found(self):
        self.update_case.execute.side_effect = CargaNotFoundError(5)
        response = self.client.put('/cargas/5', json={"carrier": "DHL"})
        self.assertEqual(response.status_code, 404)

    def test_delete_carga(self):
        response = self.client.delete('/cargas/3')

        self.assertEqual(response.status_code, 200)
        self.delete_case.execute.assert_called_once_with(3)

    def test_delete_carga_not_found(self):
        self.delete_case.execute.side_effect = CargaNotFoundError(3)
        self.assertEqual(self.client.delete('/cargas/3').status_code, 404)

    # --- Planificación ---

    def test_schedule_carga(self):
        self.schedule_case.execute.return_value = MOCK_CARGA_DATA

        response = self.client.put('/cargas/1/schedule', json={"scheduled_load_at": "2025-03-10T08:00:00"})

        self.assertEqual(response.status_code, 200)
        self.schedule_case.execute.assert_called_once_with(1, {"scheduled_load_at": "2025-03-10T08:00:00"})

    def test_schedule_carga_invalid(self):
        self.schedule_case.execute.side_effect = ValueError("Campos no permitidos")
        response = self.client.put('/cargas/1/schedule', json={"state_id": 3})
        self.assertEqual(response.status_code, 400)

    def test_planning_buckets(self):
        self.planning_case.execute.return_value = {UNSCHEDULED: [], "2025-03-10": [MOCK_CARGA_DATA]}

        response = self.client.get('/cargas/planning?year=2025')

        self.assertEqual(response.status_code, 200)
        buckets = json.loads(response.data)["buckets"]
        self.assertEqual([b["key"] for b in buckets], [UNSCHEDULED, "2025-03-10"])
        self.assertEqual(self.planning_case.execute.call_args[0][0].year, 2025)

    def test_count(self):
        self.count_case.execute.return_value = {"total": 3, "active": 2, "by_state": {}, "year": 2025}

        response = self.client.get('/cargas/count?year=2025')

        self.assertEqual(response.status_code, 200)
        self.count_case.execute.assert_called_once_with(2025)

    def test_lookup(self):
        self.lookup_case.execute.return_value = {"countries": [], "states": [], "services": []}
        self.assertEqual(self.client.get('/cargas/lookup').status_code, 200)

    # --- POST /cargas/sync ---

    def test_sync_success(self):
        self.sync_case.execute.return_value = SyncResult(inserted_count=3, skipped_count=10, failed_count=1)

        response = self.client.post('/cargas/sync')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.data),
                         {"inserted_count": 3, "skipped_count": 10, "failed_count": 1})

    def test_sync_erp_failure(self):
        self.sync_case.execute.return_value = SyncResult(error="Falló la autenticación con Primavera: 401")

        response = self.client.post('/cargas/sync')

        self.assertEqual(response.status_code, 502)
        self.assertIn("autenticación", json.loads(response.data)["error"])

    def test_sync_already_running(self):
        self.sync_case.execute.return_value = SyncResult(error=SYNC_ALREADY_RUNNING)
        self.assertEqual(self.client.post('/cargas/sync').status_code, 409)


class TestCreateApp(unittest.TestCase):
    """Cableado completo con el pool y el cliente del ERP inyectados."""

    def test_health_check(self):
        from app import create_app
        app = create_app(db_pool=Mock(), erp_client=Mock())

        response = app.test_client().get('/health')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.data), {'status': 'ok'})

    def test_lookup_through_the_app(self):
        from app import create_app
        app = create_app(db_pool=Mock(), erp_client=Mock())

        data = json.loads(app.test_client().get('/cargas/lookup').data)

        self.assertEqual(len(data["states"]), 4)
        self.assertEqual(data["services"][-1]["code"], "CARE_PLAN")


if __name__ == '__main__':
    unittest.main()

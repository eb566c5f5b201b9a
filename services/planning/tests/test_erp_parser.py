import pytest
from datetime import datetime

from src.application.erp_parser import parse_external_order, parse_services, placeholder_load_date
from src.domain.entities import DedupKey, OrderState, ServiceTag

NOW = datetime(2025, 6, 15, 10, 0, 0)


def erp_record(**overrides):
    """Registro típico tal como lo devuelve la lista de Primavera."""
    record = {
        "ID": "ENC-0001",
        "Cliente": "Câmara Municipal de Braga",
        "Pais": "PT",
        "CondicoesdePagamento": "30 dias",
        "ContactoParaEntrega": "Sr. Silva 912345678",
        "EncomendadoCliente": "PO-778",
        "EncomendaPrimavera": "ECL 2025/118",
        "MercadoriaaEntregar": "10 contentores enterrados",
        "MercadoriaQueFaltaEntregar": "",
        "DataEntregaPrevista": "Semana 32",
        "Projeto": "Braga Centro",
        "LocaldeEntrega": "Braga",
        "ServicosaRealizar": "Transporte, Instalação",
        "DatadaEncomenda": "2025-05-02T00:00:00",
    }
    record.update(overrides)
    return record


class TestParseExternalOrder:

    def test_maps_all_fields(self):
        result = parse_external_order(erp_record(), NOW)

        assert result.ok
        assert result.warnings == []
        carga = result.parsed.carga
        assert carga.id is None
        assert carga.external_ref == "ENC-0001"
        assert carga.client == "Câmara Municipal de Braga"
        assert carga.country_id == 1
        assert carga.payment_terms == "30 dias"
        assert carga.delivery_contacts == "Sr. Silva 912345678"
        assert carga.client_order_ref == "PO-778"
        assert carga.erp_order_ref == "ECL 2025/118"
        assert carga.merchandise == "10 contentores enterrados"
        assert carga.merchandise_pending is None
        assert carga.delivery_deadline_text == "Semana 32"
        assert carga.project == "Braga Centro"
        assert carga.delivery_location == "Braga"
        assert carga.services == [ServiceTag.TRANSPORT, ServiceTag.INSTALLATION]
        assert carga.created_at == datetime(2025, 5, 2)

    def test_new_carga_gets_state_new_and_placeholder_date(self):
        carga = parse_external_order(erp_record(), NOW).parsed.carga
        assert carga.state_id == OrderState.NEW
        assert carga.scheduled_load_at == datetime(2025, 12, 31, 23, 59)
        assert carga.carrier is None
        assert carga.transport_cost is None
        assert carga.production_start is None

    def test_dedup_key_is_built_from_the_carga(self):
        parsed = parse_external_order(erp_record(), NOW).parsed
        assert parsed.dedup_key == DedupKey("ENC-0001", "Câmara Municipal de Braga",
                                            "10 contentores enterrados", "Braga")

    def test_unknown_services_are_dropped(self):
        parsed = parse_external_order(erp_record(ServicosaRealizar="Transporte, Nonsense, Instalação"), NOW).parsed
        assert parsed.carga.services == [ServiceTag.TRANSPORT, ServiceTag.INSTALLATION]
        assert parsed.dropped_services == ["Nonsense"]

    def test_unmapped_country_falls_back_with_warning(self):
        result = parse_external_order(erp_record(Pais="DE"), NOW)
        assert result.ok
        assert result.parsed.carga.country_id == 1
        assert [w.field for w in result.warnings] == ["Pais"]

    def test_missing_fields_become_none(self):
        result = parse_external_order({"ID": "X-1"}, NOW)
        assert result.ok
        carga = result.parsed.carga
        assert carga.client is None
        assert carga.services == []
        assert carga.created_at == NOW
        assert result.parsed.dedup_key == DedupKey("X-1", "", "", "")

    def test_numeric_values_are_stringified(self):
        carga = parse_external_order(erp_record(ID=12345), NOW).parsed.carga
        assert carga.external_ref == "12345"

    def test_out_of_range_order_date_warns_and_uses_now(self):
        result = parse_external_order(erp_record(DatadaEncomenda="0001-01-01T00:00:00+14:00"), NOW)
        assert result.ok
        assert result.parsed.carga.created_at == NOW
        assert [w.field for w in result.warnings] == ["DatadaEncomenda"]

    def test_parsed_carga_is_flagged_as_erp(self):
        assert parse_external_order(erp_record(), NOW).parsed.carga.from_erp is True

    def test_invalid_order_date_warns_and_uses_now(self):
        result = parse_external_order(erp_record(DatadaEncomenda="no es fecha"), NOW)
        assert result.ok
        assert result.parsed.carga.created_at == NOW
        assert [w.field for w in result.warnings] == ["DatadaEncomenda"]

    @pytest.mark.parametrize("record", [None, "texto", ["ID"], 42])
    def test_non_object_record_is_an_error(self, record):
        result = parse_external_order(record, NOW)
        assert not result.ok
        assert result.issue.severity == "error"

    def test_structured_field_is_an_error(self):
        result = parse_external_order(erp_record(Cliente={"nome": "X"}), NOW)
        assert not result.ok
        assert result.issue.field == "Cliente"


class TestParseServices:

    def test_empty(self):
        assert parse_services(None) == ([], [])
        assert parse_services("") == ([], [])

    def test_nenhum_is_not_a_service(self):
        assert parse_services("Nenhum") == ([], ["Nenhum"])

    def test_duplicates_collapse(self):
        ids, dropped = parse_services("Sotcare,Sotcare, Obra civil ,")
        assert ids == [ServiceTag.CARE_PLAN, ServiceTag.CIVIL_WORKS]
        assert dropped == []


def test_placeholder_is_end_of_current_year():
    assert placeholder_load_date(datetime(2026, 1, 1)) == datetime(2026, 12, 31, 23, 59)

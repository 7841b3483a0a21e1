"""Tests for the HTTP backend client."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests

from caja_pos.api import GENERIC_FAILURE_MESSAGE, BackendClient
from caja_pos.errors import CollaboratorError


def _response(status_code=200, body=None, raw=b""):
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    if body is None:
        response.content = raw
        response.json.side_effect = ValueError("no json")
    else:
        response.content = b"{}"
        response.json.return_value = body
    return response


@pytest.fixture
def client():
    backend = BackendClient("http://pos.test/api/", timeout=5)
    backend.location_id = "local-1"
    return backend


def test_submit_sale_posts_wire_payload(client):
    with patch.object(requests.Session, "request", return_value=_response(body={"numero_pedido": 12})) as mocked:
        data = client.submit_sale([{"productoId": "p1"}], Decimal(6000), "Efectivo", "—")

    assert data == {"numero_pedido": 12}
    method, url = mocked.call_args.args
    assert method == "POST"
    assert url == "http://pos.test/api/ventas"
    assert mocked.call_args.kwargs["json"] == {
        "productos": [{"productoId": "p1"}],
        "total": 6000,
        "tipo_pago": "Efectivo",
        "tipo_pedido": "—",
    }
    assert mocked.call_args.kwargs["headers"] == {"X-Local-Id": "local-1"}
    assert mocked.call_args.kwargs["timeout"] == 5


def test_location_header_omitted_without_location(client):
    client.location_id = ""
    with patch.object(requests.Session, "request", return_value=_response(body=[])) as mocked:
        client.list_products()

    assert mocked.call_args.kwargs["headers"] == {}


def test_open_and_close_register_endpoints(client):
    with patch.object(requests.Session, "request", return_value=_response(body={"resumen": {"total": 100}})) as mocked:
        client.open_register(Decimal("1500.5"))
        assert mocked.call_args.args == ("POST", "http://pos.test/api/caja/abrir")
        assert mocked.call_args.kwargs["json"] == {"monto_inicial": 1500.5}

        assert client.close_register("Ana") == {"resumen": {"total": 100}}
        assert mocked.call_args.args == ("POST", "http://pos.test/api/caja/cerrar")
        assert mocked.call_args.kwargs["json"] == {"nombre": "Ana"}


def test_discard_held_ticket_uses_delete(client):
    with patch.object(requests.Session, "request", return_value=_response(status_code=204)) as mocked:
        client.discard_held_ticket("t1")

    assert mocked.call_args.args == ("DELETE", "http://pos.test/api/tickets/t1")


def test_backend_error_message_is_kept(client):
    with patch.object(requests.Session, "request", return_value=_response(400, {"error": "Ya existe una caja abierta"})):
        with pytest.raises(CollaboratorError) as excinfo:
            client.open_register(Decimal(1000))

    assert excinfo.value.message == "Ya existe una caja abierta"
    assert excinfo.value.status_code == 400
    assert excinfo.value.is_rejection
    assert excinfo.value.from_backend


def test_server_error_without_body_uses_generic_message(client):
    with patch.object(requests.Session, "request", return_value=_response(502, raw=b"Bad Gateway")):
        with pytest.raises(CollaboratorError) as excinfo:
            client.list_register_history()

    assert excinfo.value.message == GENERIC_FAILURE_MESSAGE
    assert excinfo.value.status_code == 502
    assert not excinfo.value.is_rejection
    assert not excinfo.value.from_backend


def test_transport_error_becomes_collaborator_error(client):
    with patch.object(requests.Session, "request", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(CollaboratorError) as excinfo:
            client.list_pending_web_orders()

    assert excinfo.value.status_code is None
    assert excinfo.value.message == GENERIC_FAILURE_MESSAGE


def test_list_endpoints_tolerate_unexpected_shapes(client):
    with patch.object(requests.Session, "request", return_value=_response(body={"not": "a list"})):
        assert client.list_pending_table_charges() == []

    with patch.object(requests.Session, "request", return_value=_response(body=[{"_id": "a"}, "junk", 3])):
        assert client.list_held_tickets() == [{"_id": "a"}]


def test_receipt_config_endpoint(client):
    body = {"nombre": "Mi Local", "copias_auto": 2}
    with patch.object(requests.Session, "request", return_value=_response(body=body)) as mocked:
        assert client.get_receipt_config() == body

    assert mocked.call_args.args == ("GET", "http://pos.test/api/config-recibo")

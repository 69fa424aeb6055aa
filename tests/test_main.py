"""
Tests for the HTTP endpoint.
"""
import pytest
from fastapi import status
from fastapi.testclient import TestClient

from ami_server import LOGIN_FAILED
from click_to_call.main import app, get_workflow
from click_to_call.workflow import CallOriginationWorkflow

# Starlette's TestClient reports this as the client host
TEST_CLIENT_HOST = "testclient"


@pytest.fixture
def client_for():
    """Build a TestClient whose workflow talks to the given settings."""
    def build(settings) -> TestClient:
        workflow = CallOriginationWorkflow(settings)
        app.dependency_overrides[get_workflow] = lambda: workflow
        return TestClient(app)

    yield build

    app.dependency_overrides.clear()


def test_root():
    response = TestClient(app).get("/")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "running"


def test_call_success(ami_server, make_settings, client_for):
    server = ami_server()
    client = client_for(make_settings(server.port, allowed_ips=[TEST_CLIENT_HOST]))

    response = client.get("/call", params={"exten": "101", "number": "+15551234567"})

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data == {
        "Success": True,
        "ValidInput": True,
        "Description": "Extension 101 is calling +15551234567.",
        "Technology": "PJSIP",
        "OriginateResponse": "Response: Success\r\nMessage: Originate successfully queued\r\n\r\n",
    }


def test_call_via_post(ami_server, make_settings, client_for):
    server = ami_server()
    client = client_for(make_settings(server.port, allowed_ips=[TEST_CLIENT_HOST]))

    response = client.post("/call", params={"exten": "101", "number": "0612345678"})

    assert response.json()["Success"] is True


def test_invalid_input(make_settings, client_for, unused_port):
    client = client_for(make_settings(unused_port, allowed_ips=[TEST_CLIENT_HOST]))

    response = client.get("/call", params={"exten": "10a", "number": "123"})

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["Success"] is False
    assert data["ValidInput"] is False
    assert data["Description"] == "Invalid extension format: 10a"


def test_missing_parameters(make_settings, client_for, unused_port):
    client = client_for(make_settings(unused_port, allowed_ips=[TEST_CLIENT_HOST]))

    data = client.get("/call").json()

    assert data["ValidInput"] is False


def test_unauthorized_client(make_settings, client_for, unused_port):
    client = client_for(make_settings(unused_port, allowed_ips=["10.0.0.0/8"]))

    data = client.get("/call", params={"exten": "101", "number": "123"}).json()

    assert data["Success"] is False
    assert data["ValidInput"] is True
    assert data["Description"] == f"Unauthorized IP address: {TEST_CLIENT_HOST}"


def test_authentication_failure(ami_server, make_settings, client_for):
    server = ami_server(replies={"Login": LOGIN_FAILED})
    client = client_for(make_settings(server.port, allowed_ips=[TEST_CLIENT_HOST]))

    data = client.get("/call", params={"exten": "101", "number": "123"}).json()

    assert data["Success"] is False
    assert data["Description"] == "Authentication failed"
    assert data["Technology"] == ""


def test_call_via_form_body(ami_server, make_settings, client_for):
    server = ami_server()
    client = client_for(make_settings(server.port, allowed_ips=[TEST_CLIENT_HOST]))

    response = client.post("/call", data={"exten": "101", "number": "+15551234567"})

    data = response.json()
    assert data["Success"] is True
    assert data["Description"] == "Extension 101 is calling +15551234567."


def test_form_body_takes_precedence_over_query(make_settings, client_for, unused_port):
    client = client_for(make_settings(unused_port, allowed_ips=[TEST_CLIENT_HOST]))

    response = client.post("/call?exten=101&number=123", data={"exten": "10a"})

    data = response.json()
    assert data["ValidInput"] is False
    assert data["Description"] == "Invalid extension format: 10a"

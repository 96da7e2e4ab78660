# test_errors.py
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.services.errors import ErrorKind, ServiceError, error_body, kind_to_status, register_error_handlers


@pytest.mark.parametrize("kind,status", [
    (ErrorKind.VALIDATION, 400),
    (ErrorKind.NOT_FOUND, 404),
    (ErrorKind.CONFLICT, 409),
    (ErrorKind.FORBIDDEN, 403),
    (ErrorKind.RATE_LIMITED, 429),
    (ErrorKind.INTERNAL, 500),
])
def test_kind_to_status(kind, status):
    assert kind_to_status(kind) == status
    assert kind_to_status(kind.value) == status


def test_every_kind_is_mapped():
    for kind in ErrorKind:
        assert kind_to_status(kind) in {400, 403, 404, 409, 429, 500}


def test_unknown_kind_rejected():
    with pytest.raises(ValueError):
        ServiceError("x", "TEAPOT")


def test_error_body_without_details():
    assert error_body(ServiceError("Restaurant non trouvé", ErrorKind.NOT_FOUND)) == {"error": "Restaurant non trouvé"}


def test_error_body_with_details():
    err = ServiceError("Données de commande invalides", ErrorKind.VALIDATION, ["a", "b"])
    assert error_body(err) == {"error": "Données de commande invalides", "details": ["a", "b"]}


def test_error_body_empty_details_omitted():
    assert "details" not in error_body(ServiceError("x", ErrorKind.VALIDATION, []))


def _app():
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/conflict")
    def conflict():
        raise ServiceError("Ce code promo existe déjà", ErrorKind.CONFLICT)

    @app.get("/boom")
    def boom():
        raise RuntimeError("database password is hunter2")

    return app


def test_service_error_translated_once():
    r = TestClient(_app()).get("/conflict")
    assert r.status_code == 409
    assert r.json() == {"error": "Ce code promo existe déjà"}


def test_unexpected_error_is_generic():
    r = TestClient(_app(), raise_server_exceptions=False).get("/boom")
    assert r.status_code == 500
    assert r.json() == {"error": "Erreur serveur"}
    assert "hunter2" not in r.text

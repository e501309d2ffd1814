from fastapi.testclient import TestClient
from app.main import app

client = TestClient(app)


def test_404_not_found():
    response = client.get("/non-existent-route")
    assert response.status_code == 404
    data = response.json()
    assert "error" in data
    assert "code" in data
    assert data["code"] == "HTTP_ERROR"


def test_validation_error_structure():
    # Temporary route with a typed body
    from pydantic import BaseModel

    class Item(BaseModel):
        name: str
        price: int

    @app.post("/test-validation")
    def create_item(item: Item):
        return item

    response = client.post("/test-validation", json={"name": "foo", "price": "invalid"})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert "details" in data
    assert len(data["details"]) > 0


def test_custom_exception():
    from app.core.exceptions import ResourceNotFoundError

    @app.get("/test-custom-error")
    def trigger_custom_error():
        raise ResourceNotFoundError(message="Item not found")

    response = client.get("/test-custom-error")
    assert response.status_code == 404
    data = response.json()
    assert data["code"] == "NOT_FOUND"
    assert data["error"] == "Item not found"


def test_client_error_carries_fields_and_extra():
    from app.core.exceptions import ClientError

    @app.get("/test-client-error")
    def trigger_client_error():
        raise ClientError("Wrong login or password.", fields=["email_or_nick", "pass"], captcha=True)

    response = client.get("/test-client-error")
    assert response.status_code == 406
    data = response.json()
    assert data["code"] == "CLIENT_ERROR"
    assert data["fields"] == ["email_or_nick", "pass"]
    assert data["captcha"] is True


def test_unhandled_exception_is_500():
    @app.get("/test-crash")
    def crash():
        raise RuntimeError("boom")

    crash_client = TestClient(app, raise_server_exceptions=False)
    response = crash_client.get("/test-crash")
    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_ERROR"


def test_liveness():
    response = client.get("/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}

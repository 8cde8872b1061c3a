from fastapi.testclient import TestClient
from api.main import app

import spotcheck

client = TestClient(app)

def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == spotcheck.__version__

# Overview: Pytest coverage for the health endpoint and operator context handling.


def test_health_degraded_without_branches(client, db_session):
    response = client.get('/api/health')

    assert response.status_code == 200
    assert response.json["status"] == "degraded"


def test_health_ok(client, branch):
    response = client.get('/api/health')

    assert response.status_code == 200
    assert response.json["status"] == "healthy"
    assert response.json["checks"]["database"]["details"]["active_branches"] == 1


def test_missing_operator_headers_is_401(client, branch):
    response = client.get('/api/orders', headers={'X-Branch-Id': str(branch.id)})

    assert response.status_code == 401


def test_malformed_branch_header_is_401(client, branch):
    response = client.get('/api/orders', headers={'X-Operator-Name': 'maria', 'X-Branch-Id': 'downtown'})

    assert response.status_code == 401


def test_cors_for_local_frontend(client, branch):
    response = client.get('/api/health', headers={'Origin': 'http://localhost:5173'})

    assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
    assert "X-Operator-Name" in response.headers["Access-Control-Allow-Headers"]

"""
Tests for the allow-list CORS middleware.
"""


class TestCors:
    def test_listed_origin_is_echoed(self, client):
        response = client.get("/health", headers={"Origin": "https://admin.example.com"})
        assert response.headers["access-control-allow-origin"] == "https://admin.example.com"
        assert response.headers["access-control-allow-credentials"] == "true"

    def test_unlisted_origin_gets_first_entry(self, client):
        response = client.get("/health", headers={"Origin": "https://evil.example.org"})
        assert response.headers["access-control-allow-origin"] == "https://crm.example.com"
        assert "access-control-allow-credentials" not in response.headers

    def test_preflight(self, client):
        response = client.options(
            "/api/properties",
            headers={"Origin": "https://crm.example.com", "Access-Control-Request-Method": "POST"},
        )
        assert response.status_code == 204
        assert response.headers["access-control-allow-origin"] == "https://crm.example.com"
        assert "POST" in response.headers["access-control-allow-methods"]

    def test_error_responses_carry_headers(self, client):
        response = client.get("/api/properties", headers={"Origin": "https://crm.example.com"})
        assert response.status_code == 401
        assert response.headers["access-control-allow-origin"] == "https://crm.example.com"

    def test_crashes_carry_headers(self, client):
        def explode():
            raise RuntimeError("boom")

        client.app.add_api_route("/explode", explode)

        response = client.get("/explode", headers={"Origin": "https://admin.example.com"})
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert response.headers["access-control-allow-origin"] == "https://admin.example.com"

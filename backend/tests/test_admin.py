class TestAdminStatus:
    def test_status_before_setup(self, client):
        r = client.get("/api/v1/admin/status")
        assert r.status_code == 200
        assert r.json() == {"configured": False, "active_sessions": 0}

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"


class TestAdminSetup:
    def test_setup(self, client):
        r = client.post("/api/v1/admin/setup", json={"passphrase": "test-passphrase-123"})
        assert r.status_code == 200
        assert client.get("/api/v1/admin/status").json()["configured"] is True

    def test_setup_rejects_short_passphrase(self, client):
        r = client.post("/api/v1/admin/setup", json={"passphrase": "short"})
        assert r.status_code == 400

    def test_setup_rejects_duplicate(self, client):
        client.post("/api/v1/admin/setup", json={"passphrase": "test-passphrase-123"})
        r = client.post("/api/v1/admin/setup", json={"passphrase": "another-passphrase"})
        assert r.status_code == 409


class TestAdminLogin:
    def _setup(self, client):
        client.post("/api/v1/admin/setup", json={"passphrase": "test-passphrase-123"})

    def test_login_and_logout(self, client):
        self._setup(client)
        r = client.post("/api/v1/admin/login", json={"passphrase": "test-passphrase-123"})
        assert r.status_code == 200
        token = r.json()["token"]
        headers = {"Authorization": f"Bearer {token}"}

        assert client.get("/api/v1/dashboard/stats", headers=headers).status_code == 200
        assert client.post("/api/v1/admin/logout", headers=headers).status_code == 200
        assert client.get("/api/v1/dashboard/stats", headers=headers).status_code == 401

    def test_login_before_setup(self, client):
        r = client.post("/api/v1/admin/login", json={"passphrase": "test-passphrase-123"})
        assert r.status_code == 404

    def test_wrong_passphrase(self, client):
        self._setup(client)
        r = client.post("/api/v1/admin/login", json={"passphrase": "wrong-passphrase"})
        assert r.status_code == 401

    def test_repeated_failures_throttled(self, client):
        self._setup(client)
        for _ in range(3):
            client.post("/api/v1/admin/login", json={"passphrase": "wrong-passphrase"})
        r = client.post("/api/v1/admin/login", json={"passphrase": "test-passphrase-123"})
        assert r.status_code == 429
        assert r.json()["detail"]["retry_after_seconds"] > 0

    def test_protected_routes_need_token(self, client):
        assert client.get("/api/v1/dashboard/stats").status_code == 422
        r = client.get("/api/v1/dashboard/stats", headers={"Authorization": "Bearer nope"})
        assert r.status_code == 401
        r = client.get("/api/v1/dashboard/stats", headers={"Authorization": "Basic abc"})
        assert r.status_code == 401

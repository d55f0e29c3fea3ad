"""Tests for the app factory: health, metrics, CORS and error mapping."""

from __future__ import annotations

from fastapi.testclient import TestClient

from tron_gateway.api.app import create_app
from tron_gateway.config.settings import MetricsConfig, ServerConfig
from tron_gateway.engine.client import GatewayEngine


class TestHealth:
    def test_ok(self, client) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["components"]["datastore"] == "ok"
        assert body["components"]["webhook"] == "disabled"

    def test_degraded_when_gateway_down(self, client, gateway) -> None:
        gateway.healthy = False
        resp = client.get("/health")
        assert resp.status_code == 503
        assert resp.json()["status"] == "degraded"
        assert resp.json()["components"]["gateway"] == "error"

    def test_starting_before_lifespan(self, app_config, gateway_engine) -> None:
        resp = TestClient(create_app(app_config, engine=gateway_engine)).get("/health")
        assert resp.status_code == 503
        assert resp.json() == {"status": "starting"}


class TestMetricsEndpoint:
    def test_disabled_returns_empty_body(self, client) -> None:
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert resp.content == b""

    def test_enabled_exposes_request_counts(self, app_config, gateway, signer, generator) -> None:
        config = app_config.model_copy(update={"metrics": MetricsConfig(enabled=True)})
        app = create_app(config)
        engine = GatewayEngine(
            config,
            gateway=gateway,
            signer=signer,
            generator=generator,
            metrics=app.state.metrics,
        )
        app.state.provided_engine = engine
        with TestClient(app) as client:
            client.get("/health")
            resp = client.get("/metrics")
            client.portal.call(engine.close)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/plain")
        assert 'tron_gateway_http_requests_total{method="GET",route="/health"' in resp.text
        assert "tron_gateway_pending_transfers" in resp.text


class TestCors:
    def test_preflight(self, client) -> None:
        resp = client.options(
            "/api/v1/tokens",
            headers={
                "Origin": "https://shop.example.com",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "*"

    def test_disabled(self, app_config, gateway_engine) -> None:
        config = app_config.model_copy(update={"server": ServerConfig(cors_enabled=False)})
        with TestClient(create_app(config, engine=gateway_engine)) as client:
            resp = client.get("/api/v1/tokens", headers={"Origin": "https://shop.example.com"})
            client.portal.call(gateway_engine.close)
        assert "access-control-allow-origin" not in resp.headers


class TestErrors:
    def test_not_found_shape(self, client) -> None:
        resp = client.get("/api/v1/wallets/999")
        assert resp.status_code == 404
        assert resp.json() == {"code": "wallet-not-found", "message": "wallet not found: 999"}

    def test_engine_unavailable(self, app_config, gateway_engine) -> None:
        resp = TestClient(create_app(app_config, engine=gateway_engine)).get("/api/v1/tokens")
        assert resp.status_code == 503
        assert resp.json()["code"] == "engine-unavailable"

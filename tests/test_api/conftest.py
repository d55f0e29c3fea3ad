"""API fixtures: the app served over TestClient with a fake-backed engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from fastapi.testclient import TestClient

from tron_gateway.api.app import create_app
from tron_gateway.engine.client import GatewayEngine

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def gateway_engine(app_config, gateway, signer, generator) -> GatewayEngine:
    """Uninitialized engine; the app lifespan initializes it on its own loop."""
    return GatewayEngine(app_config, gateway=gateway, signer=signer, generator=generator)


@pytest.fixture
def client(app_config, gateway_engine) -> Iterator[TestClient]:
    app = create_app(app_config, engine=gateway_engine)
    with TestClient(app) as test_client:
        yield test_client
        test_client.portal.call(gateway_engine.close)

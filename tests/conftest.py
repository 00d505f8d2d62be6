"""Shared fixtures."""

from __future__ import annotations

import pytest

from alluris_mcp.transport.mock import MockTransport
from simulated_gauge import SimulatedGauge, attach


@pytest.fixture
def device() -> SimulatedGauge:
    return SimulatedGauge()


@pytest.fixture
def transport(device: SimulatedGauge) -> MockTransport:
    return attach(device)

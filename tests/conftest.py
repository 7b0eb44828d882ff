from __future__ import annotations

import pytest

from blecentral.core.controller import CentralController
from blecentral.core.model import Event, ServiceFilter
from fakes import C1, S1, FakeRadioAdapter


@pytest.fixture
def adapter() -> FakeRadioAdapter:
    return FakeRadioAdapter()


@pytest.fixture
def service_filter() -> ServiceFilter:
    return ServiceFilter(service_ids=frozenset({S1}), characteristic_ids=frozenset({C1}))


@pytest.fixture
def controller(adapter: FakeRadioAdapter, service_filter: ServiceFilter) -> CentralController:
    return CentralController(adapter, service_filter)


@pytest.fixture
def events(controller: CentralController) -> list[Event]:
    received: list[Event] = []
    controller.events.subscribe(received.append)
    return received

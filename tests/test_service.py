from __future__ import annotations

import itertools
import time

import pytest

from blecentral.core.errors import AdapterTimeoutError, ProfileResolutionError
from blecentral.core.model import (
    CharacteristicsDiscovered,
    Connected,
    DataReceived,
    Discovered,
    NotifyStateChanged,
    PeripheralConnected,
    PeripheralDiscovered,
    ScanningChanged,
    ServicesDiscovered,
    ValueUpdated,
)
from blecentral.core.service import CentralService
from fakes import P1, P2, FakeRadioAdapter

HR_SERVICE = "0000180d-0000-1000-8000-00805f9b34fb"
HR_MEASUREMENT = "00002a37-0000-1000-8000-00805f9b34fb"


@pytest.fixture(autouse=True)
def _isolated_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))


def _heart_rate_session(adapter: FakeRadioAdapter) -> None:
    adapter.emit(Discovered(P1))
    adapter.emit(Connected(P1))
    adapter.emit(ServicesDiscovered(P1, (HR_SERVICE,)))
    adapter.emit(CharacteristicsDiscovered(P1, HR_SERVICE, (HR_MEASUREMENT,)))
    adapter.emit(NotifyStateChanged(P1, HR_MEASUREMENT, True))
    adapter.emit(ValueUpdated(P1, HR_MEASUREMENT, b"\x00\x48"))


def test_default_profile_is_generic() -> None:
    service = CentralService(adapter=FakeRadioAdapter())
    assert service.profile.id == "generic"
    assert service.controller.service_filter.service_ids == frozenset()


def test_unknown_profile_lists_available() -> None:
    with pytest.raises(ProfileResolutionError) as exc:
        CentralService(profile_id="nope", adapter=FakeRadioAdapter())
    assert "heart_rate" in str(exc.value)


def test_profile_policy_reaches_controller() -> None:
    service = CentralService(profile_id="battery", adapter=FakeRadioAdapter())
    assert service.controller.policy.connect_on_discovery is False


def test_scan_forwards_events(monkeypatch: pytest.MonkeyPatch) -> None:
    adapter = FakeRadioAdapter()
    service = CentralService(profile_id="heart_rate", adapter=adapter)
    monkeypatch.setattr(time, "sleep", lambda _: _heart_rate_session(adapter))

    seen = []
    peripherals = service.scan(5.0, seen.append)

    assert adapter.started
    assert seen == [
        ScanningChanged(active=True),
        PeripheralDiscovered(P1),
        PeripheralConnected(P1),
        DataReceived(P1, HR_MEASUREMENT, b"\x00\x48"),
        ScanningChanged(active=False),
    ]
    assert [p.id for p in peripherals] == [P1]
    assert service.controller.events.subscriber_count == 0


def test_send_waits_for_resolution_then_writes(monkeypatch: pytest.MonkeyPatch) -> None:
    adapter = FakeRadioAdapter()
    service = CentralService(profile_id="heart_rate", adapter=adapter)
    monkeypatch.setattr(time, "sleep", lambda _: _heart_rate_session(adapter))

    result = service.send(P1, "180d", "2A37", b"\x01", timeout_s=5.0)

    assert result.payload_hex == "01"
    assert result.service_id == HR_SERVICE
    assert adapter.calls_named("write") == [("write", P1, HR_SERVICE, HR_MEASUREMENT, b"\x01", False)]
    assert adapter.calls[-1] == ("stop_scan",)


def test_send_times_out_when_target_never_resolves(monkeypatch: pytest.MonkeyPatch) -> None:
    adapter = FakeRadioAdapter()
    service = CentralService(profile_id="heart_rate", adapter=adapter)
    clock = itertools.count(0.0, 1.0)
    monkeypatch.setattr(time, "monotonic", lambda: next(clock))
    monkeypatch.setattr(time, "sleep", lambda _: None)

    with pytest.raises(AdapterTimeoutError):
        service.send(P1, "180d", "2a37", b"\x01", timeout_s=1.5)

    assert adapter.calls_named("write") == []
    assert adapter.calls[-1] == ("stop_scan",)


def test_context_manager_starts_and_closes_adapter() -> None:
    adapter = FakeRadioAdapter()
    with CentralService(adapter=adapter) as service:
        assert adapter.started
        assert service.list_profiles()[0].id == "battery"
    assert adapter.closed
    assert adapter.sink is None


def test_send_connects_target_under_discovery_only_profile(monkeypatch: pytest.MonkeyPatch) -> None:
    adapter = FakeRadioAdapter()
    service = CentralService(adapter=adapter)

    def _session(_: float) -> None:
        if not adapter.calls_named("connect"):
            adapter.emit(Discovered(P2))
            adapter.emit(Discovered(P1))
            return
        adapter.emit(Connected(P1))
        adapter.emit(ServicesDiscovered(P1, (HR_SERVICE,)))
        adapter.emit(CharacteristicsDiscovered(P1, HR_SERVICE, (HR_MEASUREMENT,)))

    monkeypatch.setattr(time, "sleep", _session)

    service.send(P1, "180d", "2a37", b"\x01", timeout_s=5.0)

    assert adapter.calls_named("connect") == [("connect", P1)]
    assert adapter.calls_named("set_notify") == []
    assert adapter.calls_named("write") == [("write", P1, HR_SERVICE, HR_MEASUREMENT, b"\x01", False)]

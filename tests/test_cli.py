from __future__ import annotations

from typer.testing import CliRunner

from blecentral import cli
from blecentral.core.model import (
    AUTO_CONNECT,
    MANUAL,
    ConnectionState,
    DataReceived,
    PeripheralDiscovered,
    PeripheralSnapshot,
    Profile,
    ScanningChanged,
    ServiceFilter,
)
from blecentral.core.service import SendResult

HR_SERVICE = "0000180d-0000-1000-8000-00805f9b34fb"
HR_MEASUREMENT = "00002a37-0000-1000-8000-00805f9b34fb"


class FakeService:
    instances: list[FakeService] = []

    def __init__(self, *, profile_id=None) -> None:
        self.profile_id = profile_id
        self.closed = False
        self.load_warnings = ()
        self.sent: list[tuple] = []
        FakeService.instances.append(self)

    def list_profiles(self):
        return [
            Profile(
                id="battery",
                name="Battery Service (passive)",
                service_filter=ServiceFilter(),
                policy=MANUAL,
            ),
            Profile(
                id="heart_rate",
                name="Heart Rate Monitor",
                service_filter=ServiceFilter(
                    service_ids=frozenset({HR_SERVICE}),
                    characteristic_ids=frozenset({HR_MEASUREMENT}),
                ),
                policy=AUTO_CONNECT,
            ),
        ]

    def scan(self, duration_s, on_event):
        on_event(ScanningChanged(active=True))
        on_event(PeripheralDiscovered("AA:BB:CC:DD:EE:01"))
        on_event(DataReceived("AA:BB:CC:DD:EE:01", HR_MEASUREMENT, b"\x00\x48"))
        on_event(ScanningChanged(active=False))
        return [
            PeripheralSnapshot(
                id="AA:BB:CC:DD:EE:01",
                connection_state=ConnectionState.SUBSCRIBED,
                discovered_services=frozenset({HR_SERVICE}),
                characteristics={HR_SERVICE: frozenset({HR_MEASUREMENT})},
                subscribed_characteristics=frozenset({HR_MEASUREMENT}),
            )
        ]

    def send(self, peripheral_id, service_id, characteristic_id, payload, *, timeout_s=10.0):
        self.sent.append((peripheral_id, service_id, characteristic_id, payload, timeout_s))
        return SendResult(
            peripheral_id=peripheral_id,
            service_id=HR_SERVICE,
            characteristic_id=HR_MEASUREMENT,
            payload_hex=payload.hex(),
        )

    def close(self) -> None:
        self.closed = True


runner = CliRunner()


def test_profiles_command(monkeypatch):
    monkeypatch.setattr(cli, "CentralService", FakeService)
    result = runner.invoke(cli.app, ["profiles"])
    assert result.exit_code == 0
    assert "heart_rate: Heart Rate Monitor" in result.stdout
    assert f"services: {HR_SERVICE}" in result.stdout
    assert "services: <any>" in result.stdout
    assert "characteristics: <none>" in result.stdout
    assert "auto-connect: off" in result.stdout


def test_scan_command_prints_events(monkeypatch):
    FakeService.instances.clear()
    monkeypatch.setattr(cli, "CentralService", FakeService)
    result = runner.invoke(cli.app, ["scan", "--profile", "heart_rate", "--duration", "1"])
    assert result.exit_code == 0
    assert "scanning on" in result.stdout
    assert "discovered AA:BB:CC:DD:EE:01" in result.stdout
    assert f"data AA:BB:CC:DD:EE:01 {HR_MEASUREMENT} 0048" in result.stdout
    assert "1 peripheral(s) seen" in result.stdout
    assert "subscribed" in result.stdout
    assert FakeService.instances[-1].profile_id == "heart_rate"
    assert FakeService.instances[-1].closed


def test_send_command(monkeypatch):
    FakeService.instances.clear()
    monkeypatch.setattr(cli, "CentralService", FakeService)
    result = runner.invoke(
        cli.app,
        ["send", "AA:BB:CC:DD:EE:01", "180d", "2a37", "01 02", "--timeout", "3"],
    )
    assert result.exit_code == 0
    assert "Sent payload=0102 to AA:BB:CC:DD:EE:01" in result.stdout
    assert FakeService.instances[-1].sent == [("AA:BB:CC:DD:EE:01", "180d", "2a37", b"\x01\x02", 3.0)]


def test_send_command_rejects_bad_hex(monkeypatch):
    monkeypatch.setattr(cli, "CentralService", FakeService)
    result = runner.invoke(cli.app, ["send", "AA:BB:CC:DD:EE:01", "180d", "2a37", "zz"])
    assert result.exit_code != 0


def test_send_command_error_is_clean(monkeypatch):
    class FailingService(FakeService):
        def send(self, peripheral_id, service_id, characteristic_id, payload, *, timeout_s=10.0):
            from blecentral.core.errors import AdapterTimeoutError

            raise AdapterTimeoutError("Timed out after 3s waiting for 2a37 on AA:BB:CC:DD:EE:01")

    monkeypatch.setattr(cli, "CentralService", FailingService)
    result = runner.invoke(cli.app, ["send", "AA:BB:CC:DD:EE:01", "180d", "2a37", "01"])
    assert result.exit_code == 1
    assert "Error: Timed out after 3s" in result.stderr
    assert "Traceback" not in result.stdout


def test_unknown_profile_error_is_clean(monkeypatch):
    class UnknownProfileService(FakeService):
        def __init__(self, *, profile_id=None) -> None:
            from blecentral.core.errors import ProfileResolutionError

            raise ProfileResolutionError(f"Unknown profile '{profile_id}'. Available: heart_rate")

    monkeypatch.setattr(cli, "CentralService", UnknownProfileService)
    result = runner.invoke(cli.app, ["scan", "--profile", "nope"])
    assert result.exit_code == 1
    assert "Error: Unknown profile 'nope'" in result.stderr


def test_verbose_flag_is_accepted(monkeypatch):
    monkeypatch.setattr(cli, "CentralService", FakeService)
    result = runner.invoke(cli.app, ["-v", "profiles"])
    assert result.exit_code == 0

"""Tests for the collector modules.

psutil is patched so every counter sequence is deterministic; a couple of
smoke tests at the end run against the real host.
"""

from collections import namedtuple
from types import SimpleNamespace
from unittest.mock import patch

import psutil
import pytest

from sysmon.collector import builtin_modules
from sysmon.collector.battery import BatteryModule, battery_status
from sysmon.collector.cpu import CpuModule
from sysmon.collector.network import NetworkModule
from sysmon.collector.ram import RamModule
from sysmon.collector.storage import StorageModule
from sysmon.config import ConfigSource
from sysmon.errors import NotSupportedError, SysmonIOError
from sysmon.snapshot import MetricType, SnapshotBuilder

CpuTimes = namedtuple(
    "CpuTimes", "user nice system idle iowait irq softirq steal guest guest_nice"
)
NetIO = namedtuple("NetIO", "bytes_sent bytes_recv")
DiskUsage = namedtuple("DiskUsage", "total used free percent")


def cpu_times(busy: float, idle: float) -> CpuTimes:
    # guest time must not count towards the total
    return CpuTimes(busy, 0.0, 0.0, idle, 0.0, 0.0, 0.0, 0.0, 999.0, 999.0)


def poll(module, now_ms=0, refresh_due=True):
    builder = SnapshotBuilder()
    module.poll(now_ms, refresh_due, builder)
    return builder.finalize()


def test_builtin_module_order():
    assert [m.name for m in builtin_modules()] == ["cpu", "ram", "battery", "network", "storage"]


# ---------------------------------------------------------------------------
# cpu
# ---------------------------------------------------------------------------

class TestCpuModule:
    """Tests for the CPU usage module."""

    def test_first_refresh_reports_zero(self):
        with patch("sysmon.collector.cpu.psutil.cpu_times", return_value=cpu_times(50, 50)), \
                patch("sysmon.collector.cpu.psutil.cpu_count", return_value=8):
            module = CpuModule.create(ConfigSource(), "module.cpu")
            snapshot = poll(module)

        assert snapshot.find("cpu.usage_percent").value == 0.0
        assert snapshot.find("cpu.usage_percent").unit == "%"
        cores = snapshot.find("cpu.core_count")
        assert cores.type is MetricType.UINT64
        assert cores.value == 8

    def test_usage_from_deltas(self):
        module = CpuModule(core_count=4)
        samples = [cpu_times(100, 100), cpu_times(175, 125)]
        with patch("sysmon.collector.cpu.psutil.cpu_times", side_effect=samples):
            poll(module)
            snapshot = poll(module)
        # busy delta 75 of total delta 100
        assert snapshot.find("cpu.usage_percent").value == pytest.approx(75.0)

    def test_stale_poll_does_not_reread(self):
        module = CpuModule()
        samples = [cpu_times(100, 100), cpu_times(150, 150)]
        with patch("sysmon.collector.cpu.psutil.cpu_times", side_effect=samples) as mock_times:
            poll(module)
            poll(module, refresh_due=True)
            first = poll(module, refresh_due=False)
            second = poll(module, refresh_due=False)
        assert mock_times.call_count == 2
        assert first.to_dict() == second.to_dict()
        assert first.find("cpu.usage_percent").value == pytest.approx(50.0)

    def test_noisy_delta_keeps_last_value(self):
        module = CpuModule()
        samples = [
            cpu_times(100, 100),
            cpu_times(120, 180),  # usage 20%
            cpu_times(110, 300),  # busy went backwards, idle_delta > total_delta
            cpu_times(0, 0),      # counter reset
            cpu_times(0, 0),      # no elapsed ticks
        ]
        with patch("sysmon.collector.cpu.psutil.cpu_times", side_effect=samples):
            values = [poll(module).find("cpu.usage_percent").value for _ in samples]
        assert values[0] == 0.0
        assert values[1] == pytest.approx(20.0)
        assert values[2:] == [pytest.approx(20.0)] * 3
        assert all(0.0 <= v <= 100.0 for v in values)

    def test_core_count_absent_when_unknown(self):
        with patch("sysmon.collector.cpu.psutil.cpu_times", return_value=cpu_times(1, 1)), \
                patch("sysmon.collector.cpu.psutil.cpu_count", return_value=None):
            module = CpuModule.create(ConfigSource(), "module.cpu")
            snapshot = poll(module)
        assert snapshot.find("cpu.core_count") is None
        assert snapshot.names() == ["cpu.usage_percent"]

    def test_read_failure_is_io_error(self):
        module = CpuModule()
        with patch("sysmon.collector.cpu.psutil.cpu_times", side_effect=OSError("boom")):
            with pytest.raises(SysmonIOError):
                poll(module)

    def test_create_not_supported_when_unreadable(self):
        with patch("sysmon.collector.cpu.psutil.cpu_times", side_effect=OSError("no /proc")):
            with pytest.raises(NotSupportedError):
                CpuModule.create(ConfigSource(), "module.cpu")


# ---------------------------------------------------------------------------
# ram
# ---------------------------------------------------------------------------

class TestRamModule:
    """Tests for the memory module."""

    def test_used_and_free(self):
        total = 16 * 1024**3
        created = SimpleNamespace(total=total, available=0, free=0)
        sample = SimpleNamespace(total=total, available=4 * 1024**3, free=1024**3)
        with patch("sysmon.collector.ram.psutil.virtual_memory", side_effect=[created, sample]):
            module = RamModule.create(ConfigSource(), "module.ram")
            snapshot = poll(module)

        assert snapshot.names() == [
            "ram.total_bytes", "ram.used_bytes", "ram.free_bytes", "ram.used_percent",
        ]
        assert snapshot.find("ram.total_bytes").value == total
        assert snapshot.find("ram.free_bytes").value == 4 * 1024**3
        assert snapshot.find("ram.used_bytes").value == 12 * 1024**3
        assert snapshot.find("ram.used_percent").value == pytest.approx(75.0)

    def test_total_is_not_refreshed(self):
        module = RamModule(total_bytes=1000)
        sample = SimpleNamespace(total=5000, available=200, free=100)
        with patch("sysmon.collector.ram.psutil.virtual_memory", return_value=sample):
            snapshot = poll(module)
        assert snapshot.find("ram.total_bytes").value == 1000
        assert snapshot.find("ram.used_bytes").value == 800

    def test_free_larger_than_total_is_zero(self):
        module = RamModule(total_bytes=1000)
        sample = SimpleNamespace(total=1000, available=5000, free=5000)
        with patch("sysmon.collector.ram.psutil.virtual_memory", return_value=sample):
            snapshot = poll(module)
        assert snapshot.find("ram.free_bytes").value == 0
        assert snapshot.find("ram.used_bytes").value == 1000

    def test_zero_total_omits_percent(self):
        module = RamModule(total_bytes=0)
        sample = SimpleNamespace(total=0, available=0, free=0)
        with patch("sysmon.collector.ram.psutil.virtual_memory", return_value=sample):
            snapshot = poll(module)
        assert snapshot.find("ram.used_percent") is None


# ---------------------------------------------------------------------------
# battery
# ---------------------------------------------------------------------------

class TestBatteryModule:
    """Tests for the battery module."""

    def test_no_battery_not_supported(self):
        with patch("sysmon.collector.battery.psutil.sensors_battery", return_value=None, create=True):
            with pytest.raises(NotSupportedError):
                BatteryModule.create(ConfigSource(), "module.battery")

    def test_charging(self):
        battery = SimpleNamespace(percent=42.0, power_plugged=True, secsleft=-2)
        with patch("sysmon.collector.battery.psutil.sensors_battery", return_value=battery, create=True):
            module = BatteryModule.create(ConfigSource(), "module.battery")
            snapshot = poll(module)

        assert snapshot.names() == ["battery.percent", "battery.is_charging", "battery.status"]
        assert snapshot.find("battery.percent").value == 42.0
        assert snapshot.find("battery.is_charging").type is MetricType.INT64
        assert snapshot.find("battery.is_charging").value == 1
        assert snapshot.find("battery.status").value == "Charging"

    def test_discharging(self):
        battery = SimpleNamespace(percent=80, power_plugged=False, secsleft=3600)
        with patch("sysmon.collector.battery.psutil.sensors_battery", return_value=battery, create=True):
            snapshot = poll(BatteryModule())
        assert snapshot.find("battery.is_charging").value == 0
        assert snapshot.find("battery.status").value == "Discharging"

    def test_battery_disappears(self):
        module = BatteryModule()
        with patch("sysmon.collector.battery.psutil.sensors_battery", return_value=None, create=True):
            with pytest.raises(SysmonIOError):
                poll(module)

    @pytest.mark.parametrize(
        "percent, plugged, expected",
        [(50, True, "Charging"), (100, True, "Full"), (50, False, "Discharging"), (50, None, "unknown")],
    )
    def test_status(self, percent, plugged, expected):
        assert battery_status(percent, plugged) == expected


# ---------------------------------------------------------------------------
# network
# ---------------------------------------------------------------------------

def _if_stats(**flags):
    return {name: SimpleNamespace(isup=True, flags=value) for name, value in flags.items()}


class TestNetworkModule:
    """Tests for the network throughput module."""

    def _create(self, counters, config=None, stats=None):
        stats = stats if stats is not None else _if_stats(lo="up,loopback,running", eth0="up,running")
        with patch("sysmon.collector.network.psutil.net_io_counters", return_value=counters), \
                patch("sysmon.collector.network.psutil.net_if_stats", return_value=stats):
            return NetworkModule.create(config or ConfigSource(), "module.network")

    def test_skips_loopback_by_default(self):
        counters = {"lo": NetIO(0, 0), "eth0": NetIO(0, 0)}
        assert self._create(counters).interface == "eth0"

    def test_include_loopback(self):
        counters = {"lo": NetIO(0, 0), "eth0": NetIO(0, 0)}
        config = ConfigSource({"module.network": {"include_loopback": "yes"}})
        assert self._create(counters, config).interface == "lo"

    def test_loopback_detected_by_flag(self):
        counters = {"loopy": NetIO(0, 0), "wlan0": NetIO(0, 0)}
        stats = _if_stats(loopy="up,loopback", wlan0="up")
        assert self._create(counters, stats=stats).interface == "wlan0"

    def test_requested_interface(self):
        counters = {"lo": NetIO(0, 0), "eth0": NetIO(0, 0)}
        config = ConfigSource({"module.network": {"interface": "lo"}})
        assert self._create(counters, config).interface == "lo"

    def test_requested_interface_missing(self):
        config = ConfigSource({"module.network": {"interface": "wg9"}})
        with pytest.raises(NotSupportedError):
            self._create({"eth0": NetIO(0, 0)}, config)

    def test_only_loopback_not_supported(self):
        with pytest.raises(NotSupportedError):
            self._create({"lo": NetIO(0, 0)})

    def test_rates(self):
        module = NetworkModule("eth0")
        samples = [
            {"eth0": NetIO(bytes_sent=1000, bytes_recv=5000)},
            {"eth0": NetIO(bytes_sent=3000, bytes_recv=9000)},
        ]
        with patch("sysmon.collector.network.psutil.net_io_counters", side_effect=samples):
            first = poll(module, now_ms=10_000)
            second = poll(module, now_ms=12_000)

        assert first.find("network.rx_bytes_per_sec").value == 0.0
        assert first.find("network.tx_bytes_per_sec").value == 0.0
        assert second.names() == [
            "network.interface",
            "network.rx_bytes",
            "network.tx_bytes",
            "network.rx_bytes_per_sec",
            "network.tx_bytes_per_sec",
        ]
        assert second.find("network.interface").value == "eth0"
        assert second.find("network.rx_bytes").value == 9000
        assert second.find("network.tx_bytes").value == 3000
        assert second.find("network.rx_bytes_per_sec").value == pytest.approx(2000.0)
        assert second.find("network.tx_bytes_per_sec").value == pytest.approx(1000.0)

    def test_counter_decrease_yields_zero_rate(self):
        module = NetworkModule("eth0")
        samples = [
            {"eth0": NetIO(bytes_sent=10_000, bytes_recv=10_000)},
            {"eth0": NetIO(bytes_sent=500, bytes_recv=20_000)},
        ]
        with patch("sysmon.collector.network.psutil.net_io_counters", side_effect=samples):
            poll(module, now_ms=1000)
            snapshot = poll(module, now_ms=2000)
        assert snapshot.find("network.tx_bytes_per_sec").value == 0.0
        assert snapshot.find("network.rx_bytes_per_sec").value == pytest.approx(10_000.0)

    def test_uses_elapsed_time_not_interval(self):
        module = NetworkModule("eth0")
        samples = [{"eth0": NetIO(0, 0)}, {"eth0": NetIO(0, 500)}]
        with patch("sysmon.collector.network.psutil.net_io_counters", side_effect=samples):
            poll(module, now_ms=0)
            snapshot = poll(module, now_ms=250)
        assert snapshot.find("network.rx_bytes_per_sec").value == pytest.approx(2000.0)

    def test_interface_vanishes(self):
        module = NetworkModule("eth0")
        with patch("sysmon.collector.network.psutil.net_io_counters", return_value={}):
            with pytest.raises(SysmonIOError):
                poll(module)


# ---------------------------------------------------------------------------
# storage
# ---------------------------------------------------------------------------

class TestStorageModule:
    """Tests for the filesystem usage module."""

    def test_defaults_to_root(self):
        usage = DiskUsage(total=1000, used=600, free=300, percent=66.7)
        with patch("sysmon.collector.storage.psutil.disk_usage", return_value=usage) as mock_usage:
            module = StorageModule.create(ConfigSource(), "module.storage")
        assert module.path == "/"
        mock_usage.assert_called_once_with("/")

    def test_used_is_total_minus_free(self):
        # 600 used blocks, 400 free of which 300 available
        usage = DiskUsage(total=1000, used=600, free=300, percent=66.7)
        with patch("sysmon.collector.storage.psutil.disk_usage", return_value=usage):
            snapshot = poll(StorageModule("/data"))

        assert snapshot.names() == [
            "storage.path",
            "storage.total_bytes",
            "storage.used_bytes",
            "storage.free_bytes",
            "storage.available_bytes",
            "storage.used_percent",
        ]
        assert snapshot.find("storage.path").value == "/data"
        assert snapshot.find("storage.total_bytes").value == 1000
        assert snapshot.find("storage.free_bytes").value == 400
        assert snapshot.find("storage.available_bytes").value == 300
        assert snapshot.find("storage.used_bytes").value == 600
        assert snapshot.find("storage.used_percent").value == pytest.approx(60.0)

    def test_zero_total(self):
        usage = DiskUsage(total=0, used=0, free=0, percent=0.0)
        with patch("sysmon.collector.storage.psutil.disk_usage", return_value=usage):
            snapshot = poll(StorageModule())
        assert snapshot.find("storage.used_bytes").value == 0
        assert snapshot.find("storage.used_percent").value == 0.0

    def test_configured_path_missing(self, tmp_path):
        config = ConfigSource({"module.storage": {"path": str(tmp_path / "missing")}})
        with pytest.raises(NotSupportedError):
            StorageModule.create(config, "module.storage")

    def test_read_failure_at_poll(self):
        with patch("sysmon.collector.storage.psutil.disk_usage", side_effect=OSError("gone")):
            with pytest.raises(SysmonIOError):
                poll(StorageModule("/mnt/usb"))


# ---------------------------------------------------------------------------
# real host smoke tests
# ---------------------------------------------------------------------------

def test_cpu_module_on_host():
    module = CpuModule.create(ConfigSource(), "module.cpu")
    poll(module)
    value = poll(module).find("cpu.usage_percent").value
    assert 0.0 <= value <= 100.0


def test_storage_module_on_host(tmp_path):
    config = ConfigSource({"module.storage": {"path": str(tmp_path)}})
    snapshot = poll(StorageModule.create(config, "module.storage"))
    total = snapshot.find("storage.total_bytes").value
    assert total > 0
    assert snapshot.find("storage.used_bytes").value == total - snapshot.find("storage.free_bytes").value


def test_ram_module_on_host():
    snapshot = poll(RamModule.create(ConfigSource(), "module.ram"))
    assert snapshot.find("ram.total_bytes").value == psutil.virtual_memory().total

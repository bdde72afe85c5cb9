from unittest.mock import MagicMock, patch

from kubernetes import client
from kubernetes.config.config_exception import ConfigException

from node_life_support import main as main_module
from node_life_support.config import ControllerConfig
from node_life_support.infrastructure.error_handling import SyncError
from node_life_support.utils import RealClock


def test_build_scheduler_wires_config(clock):
    cfg = ControllerConfig(
        allowed_labels=frozenset({"gpu"}),
        sync_interval_seconds=45,
        lease_namespace="leases",
        max_workers=3,
        cycle_backoff_max_seconds=300,
        respect_kubelet_seconds=20,
    )

    sched = main_module.build_scheduler(cfg, client.ApiClient(), clock=clock)

    fleet = sched.fleet
    assert sched.interval_seconds == 45
    assert sched.backoff.enabled
    assert fleet.allowed_labels == frozenset({"gpu"})
    assert fleet.max_workers == 3
    assert fleet.request_timeout == 10.0
    assert fleet.reconciler.respect_kubelet_seconds == 20
    assert fleet.reconciler.heartbeat.namespace == "leases"
    assert fleet.reconciler.status.reason == "NodeLifeSupportOverride"


def test_invalid_config_exits_nonzero(monkeypatch):
    monkeypatch.setenv("SYNC_INTERVAL_SECONDS", "0")

    assert main_module.main([]) == 1


def test_client_failure_exits_nonzero():
    with patch.object(main_module, "load_config", return_value=ControllerConfig()), \
            patch.object(main_module, "build_api_client", side_effect=ConfigException("no config")):
        assert main_module.main([]) == 1


def _run_once(scheduler):
    with patch.object(main_module, "load_config", return_value=ControllerConfig()), \
            patch.object(main_module, "build_api_client", return_value=MagicMock()), \
            patch.object(main_module, "build_scheduler", return_value=scheduler):
        return main_module.main(["--once"])


def test_once_exits_zero_on_completed_cycle():
    scheduler = MagicMock(last_error=None)

    assert _run_once(scheduler) == 0
    scheduler.run_tick.assert_called_once_with()
    scheduler.run_forever.assert_not_called()


def test_once_exits_nonzero_on_cycle_error():
    scheduler = MagicMock(last_error=SyncError("list nodes", RuntimeError("down")))

    assert _run_once(scheduler) == 1


def test_build_scheduler_uses_wall_clock_even_with_now_utc_set(monkeypatch):
    monkeypatch.setenv("NOW_UTC", "2020-01-01T00:00:00Z")

    sched = main_module.build_scheduler(ControllerConfig(), client.ApiClient())

    heartbeat = sched.fleet.reconciler.heartbeat
    assert isinstance(heartbeat.clock, RealClock)
    renew_time = heartbeat.build_patch("n1")["spec"]["renewTime"]
    assert not renew_time.startswith("2020-01-01")


def test_malformed_now_utc_does_not_break_wiring(monkeypatch):
    monkeypatch.setenv("NOW_UTC", "not-a-time")

    sched = main_module.build_scheduler(ControllerConfig(), client.ApiClient())

    assert isinstance(sched.fleet.reconciler.status.clock, RealClock)


def test_kubeconfig_env_reaches_client_bootstrap(monkeypatch):
    monkeypatch.setenv("KUBECONFIG", "/a/config:/b/config")
    monkeypatch.setenv("KUBE_CONTEXT", "staging")

    with patch.object(main_module, "build_api_client", side_effect=ConfigException("no config")) as build:
        assert main_module.main([]) == 1

    build.assert_called_once_with("/a/config:/b/config", "staging")

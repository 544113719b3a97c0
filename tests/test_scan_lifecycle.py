import threading

import pytest

from cxscan.errors import InvalidStateError, PollingCanceledError
from cxscan.models.scan import ScanHandle, ScanRequest, ScanState
from cxscan.operations.scan_lifecycle import ScanLifecycle
from fakes import FakeScanGateway

Q, S, F = ScanState.QUEUED, ScanState.SCANNING, ScanState.FINISHED


@pytest.fixture
def request_42():
    return ScanRequest(project_id=42, preset='Default')


def test_submit_starts_queued(config, request_42):
    gateway = FakeScanGateway([S, F])

    lifecycle = ScanLifecycle.submit(request_42, gateway, config)

    assert lifecycle.state is ScanState.QUEUED
    assert lifecycle.handle == ScanHandle(1000, 42)
    assert gateway.submitted == [request_42]
    assert gateway.status_calls == 0


def test_wait_follows_remote_states(config, request_42, make_poller):
    gateway = FakeScanGateway([Q, S, S, F])
    lifecycle = ScanLifecycle.submit(request_42, gateway, config)

    assert lifecycle.wait_for_completion(make_poller()) is ScanState.FINISHED
    assert lifecycle.history == [Q, S, F]


def test_backward_moves_are_ignored(config, request_42):
    lifecycle = ScanLifecycle.submit(request_42, FakeScanGateway(), config)

    lifecycle.observe(S)
    assert lifecycle.observe(Q) is S
    assert lifecycle.state is S


def test_terminal_state_never_changes(config, request_42):
    lifecycle = ScanLifecycle.submit(request_42, FakeScanGateway(), config)

    lifecycle.observe(ScanState.FAILED)
    lifecycle.observe(F)
    lifecycle.observe(S)

    assert lifecycle.state is ScanState.FAILED
    assert lifecycle.history == [Q, ScanState.FAILED]


def test_queued_can_jump_straight_to_terminal(config, request_42):
    lifecycle = ScanLifecycle.submit(request_42, FakeScanGateway(), config)

    assert lifecycle.observe(F) is F


def test_cancel_before_scanning_never_finishes(config, request_42, make_poller):
    gateway = FakeScanGateway([S, F])
    lifecycle = ScanLifecycle.submit(request_42, gateway, config)

    assert lifecycle.cancel() is True
    assert lifecycle.state is ScanState.CANCELED
    assert gateway.canceled == [1000]

    # the remote still reports progress, but canceled is terminal
    lifecycle.refresh()
    lifecycle.refresh()
    assert lifecycle.state is ScanState.CANCELED
    assert lifecycle.wait_for_completion(make_poller()) is ScanState.CANCELED
    assert F not in lifecycle.history


def test_cancel_in_terminal_state_warns(config, request_42, reporter):
    gateway = FakeScanGateway()
    lifecycle = ScanLifecycle.submit(request_42, gateway, config, exception_reporter=reporter)
    lifecycle.observe(F)

    assert lifecycle.cancel() is False
    assert lifecycle.state is F
    assert gateway.canceled == []
    assert reporter.lifecycle_warnings[0]['scan_id'] == 1000


def test_attach_reads_remote_state(config):
    gateway = FakeScanGateway([S])
    gateway.scripts[77] = [S]

    lifecycle = ScanLifecycle.attach(ScanHandle(77, 42), gateway, config)

    assert lifecycle.state is S


def test_wait_aborted_by_caller(config, request_42, make_poller):
    gateway = FakeScanGateway([Q])
    lifecycle = ScanLifecycle.submit(request_42, gateway, config)
    cancel_event = threading.Event()
    cancel_event.set()

    with pytest.raises(PollingCanceledError) as excinfo:
        lifecycle.wait_for_completion(make_poller(), cancel_event)
    assert excinfo.value.scan_id == 1000


class TestDelete:

    def test_active_scan_is_canceled_first(self, config, request_42):
        gateway = FakeScanGateway([S])
        lifecycle = ScanLifecycle.submit(request_42, gateway, config)
        lifecycle.refresh()

        assert lifecycle.delete(delete_running_scans=True) is True

        assert gateway.canceled == [1000]
        assert gateway.deleted == [1000]
        assert lifecycle.history == [Q, S, ScanState.CANCELED, ScanState.DELETED]

    def test_active_scan_without_consent_is_refused(self, config, request_42):
        gateway = FakeScanGateway()
        lifecycle = ScanLifecycle.submit(request_42, gateway, config)

        with pytest.raises(InvalidStateError):
            lifecycle.delete(delete_running_scans=False)
        assert gateway.deleted == []
        assert lifecycle.state is Q

    def test_consent_defaults_to_config(self, config, request_42):
        config.delete_running_scans = False
        lifecycle = ScanLifecycle.submit(request_42, FakeScanGateway(), config)

        with pytest.raises(InvalidStateError):
            lifecycle.delete()

    def test_finished_scan_is_deleted_without_cancel(self, config, request_42):
        gateway = FakeScanGateway()
        lifecycle = ScanLifecycle.submit(request_42, gateway, config)
        lifecycle.observe(F)

        lifecycle.delete(delete_running_scans=False)

        assert gateway.canceled == []
        assert gateway.deleted == [1000]
        assert lifecycle.state is ScanState.DELETED

    def test_second_delete_warns(self, config, request_42, reporter):
        gateway = FakeScanGateway()
        lifecycle = ScanLifecycle.submit(request_42, gateway, config, exception_reporter=reporter)
        lifecycle.observe(F)
        lifecycle.delete()

        assert lifecycle.delete() is False
        assert gateway.deleted == [1000]
        assert len(reporter.lifecycle_warnings) == 1


def test_scan_request_is_immutable(request_42):
    with pytest.raises(AttributeError):
        request_42.preset = 'All'


@pytest.mark.parametrize('kwargs', [
    {'project_id': None, 'preset': 'Default'},
    {'project_id': 42, 'preset': ''},
])
def test_scan_request_requires_project_and_preset(kwargs):
    with pytest.raises(ValueError):
        ScanRequest(**kwargs)

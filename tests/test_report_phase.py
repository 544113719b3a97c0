import pytest

from cxscan.errors import InvalidStateError, PollingTimeoutError, ReportFailedError
from cxscan.models.report import ReportKind, ReportState
from cxscan.models.scan import ScanHandle, ScanState
from cxscan.operations.report_phase import ReportPhase
from cxscan.operations.scan_lifecycle import ScanLifecycle
from fakes import FakeReportGateway, FakeScanGateway, THREE_FINDINGS, build_xml

IN_PROGRESS, FINISHED, FAILED = ReportState.IN_PROGRESS, ReportState.FINISHED, ReportState.FAILED


def lifecycle_in(state, config, scan_id=1000):
    return ScanLifecycle(ScanHandle(scan_id, 42), FakeScanGateway(), config, state=state)


@pytest.fixture
def xml_report():
    return build_xml(THREE_FINDINGS)


@pytest.mark.parametrize('state', [ScanState.QUEUED, ScanState.SCANNING, ScanState.FAILED, ScanState.CANCELED])
def test_report_requires_finished_scan(config, make_poller, state):
    gateway = FakeReportGateway([FINISHED])
    phase = ReportPhase(config, gateway, poller=make_poller())

    with pytest.raises(InvalidStateError):
        phase.generate(lifecycle_in(state, config))

    assert gateway.requests == []
    assert gateway.status_calls == 0


def test_generate_waits_and_fetches(config, make_poller, xml_report):
    gateway = FakeReportGateway([IN_PROGRESS, IN_PROGRESS, FINISHED], content=xml_report)
    phase = ReportPhase(config, gateway, poller=make_poller())

    raw = phase.generate(lifecycle_in(ScanState.FINISHED, config))

    assert raw.kind is ReportKind.SAST_XML
    assert raw.content == xml_report
    assert raw.report_id == 7
    assert gateway.status_calls == 3
    assert gateway.fetch_calls == 1


def test_only_one_active_report_per_scan(config, make_poller):
    phase = ReportPhase(config, FakeReportGateway([IN_PROGRESS]), poller=make_poller())
    lifecycle = lifecycle_in(ScanState.FINISHED, config)

    phase.request_report(lifecycle)
    with pytest.raises(InvalidStateError):
        phase.request_report(lifecycle)

    # another scan is unaffected
    assert phase.request_report(lifecycle_in(ScanState.FINISHED, config, scan_id=1001)).report_id == 8


def test_new_report_allowed_after_previous_finished(config, make_poller, xml_report):
    gateway = FakeReportGateway([FINISHED], content=xml_report)
    phase = ReportPhase(config, gateway, poller=make_poller())
    lifecycle = lifecycle_in(ScanState.FINISHED, config)

    phase.generate(lifecycle)
    phase.generate(lifecycle)

    assert len(gateway.requests) == 2


def test_fetch_downloads_once(config, make_poller, xml_report):
    gateway = FakeReportGateway([FINISHED], content=xml_report)
    phase = ReportPhase(config, gateway, poller=make_poller())
    handle = phase.wait_for_report(phase.request_report(lifecycle_in(ScanState.FINISHED, config)))

    first = phase.fetch(handle)
    second = phase.fetch(handle)

    assert first == second == xml_report
    assert gateway.fetch_calls == 1
    assert handle.is_fetched


def test_fetch_before_finished_is_refused(config, make_poller):
    gateway = FakeReportGateway([IN_PROGRESS])
    phase = ReportPhase(config, gateway, poller=make_poller())
    handle = phase.request_report(lifecycle_in(ScanState.FINISHED, config))

    with pytest.raises(InvalidStateError):
        phase.fetch(handle)
    assert gateway.fetch_calls == 0


def test_failed_report(config, make_poller):
    gateway = FakeReportGateway([IN_PROGRESS, FAILED])
    phase = ReportPhase(config, gateway, poller=make_poller())

    with pytest.raises(ReportFailedError) as excinfo:
        phase.generate(lifecycle_in(ScanState.FINISHED, config))

    assert excinfo.value.report_id == 7
    assert excinfo.value.scan_id == 1000
    assert gateway.fetch_calls == 0


def test_report_wait_times_out(config, make_poller):
    phase = ReportPhase(config, FakeReportGateway([IN_PROGRESS]), poller=make_poller(max_wait=5.0))

    with pytest.raises(PollingTimeoutError) as excinfo:
        phase.generate(lifecycle_in(ScanState.FINISHED, config))
    assert excinfo.value.report_id == 7


def test_raw_report_saved_when_enabled(config, make_poller, xml_report, tmp_path):
    from cxscan.utils.file_manager import FileManager

    config.output_directory = str(tmp_path)
    config.save_raw_reports = True
    file_manager = FileManager(config)
    file_manager.setup_directories()
    phase = ReportPhase(config, FakeReportGateway([FINISHED], content=xml_report),
                        file_manager=file_manager, poller=make_poller())

    phase.generate(lifecycle_in(ScanState.FINISHED, config))

    saved = list(tmp_path.rglob('*.xml'))
    assert len(saved) == 1
    assert saved[0].read_bytes() == xml_report


def test_report_reused_after_wait_timed_out(config, make_poller, xml_report):
    gateway = FakeReportGateway([IN_PROGRESS], content=xml_report)
    phase = ReportPhase(config, gateway, poller=make_poller(max_wait=3.0))
    lifecycle = lifecycle_in(ScanState.FINISHED, config)

    with pytest.raises(PollingTimeoutError):
        phase.generate(lifecycle)
    assert phase.active_report(lifecycle.handle).state is IN_PROGRESS

    gateway.script = [FINISHED]
    raw = phase.generate(lifecycle)

    assert raw.content == xml_report
    assert raw.report_id == 7
    assert len(gateway.requests) == 1


def test_report_still_running_after_timeout_is_refused(config, make_poller):
    gateway = FakeReportGateway([IN_PROGRESS])
    phase = ReportPhase(config, gateway, poller=make_poller(max_wait=3.0))
    lifecycle = lifecycle_in(ScanState.FINISHED, config)

    with pytest.raises(PollingTimeoutError):
        phase.generate(lifecycle)
    with pytest.raises(InvalidStateError):
        phase.generate(lifecycle)
    assert len(gateway.requests) == 1


def test_new_report_requested_when_previous_failed_remotely(config, make_poller, xml_report):
    gateway = FakeReportGateway([IN_PROGRESS], content=xml_report)
    phase = ReportPhase(config, gateway, poller=make_poller(max_wait=3.0))
    lifecycle = lifecycle_in(ScanState.FINISHED, config)

    with pytest.raises(PollingTimeoutError):
        phase.generate(lifecycle)

    gateway.script = [FAILED, FINISHED]
    raw = phase.generate(lifecycle)

    assert raw.report_id == 8
    assert len(gateway.requests) == 2


def test_finished_report_is_released(config, make_poller, xml_report):
    phase = ReportPhase(config, FakeReportGateway([FINISHED], content=xml_report), poller=make_poller())
    lifecycle = lifecycle_in(ScanState.FINISHED, config)

    phase.generate(lifecycle)

    assert phase.active_report(lifecycle.handle) is None


def test_failed_report_is_released(config, make_poller):
    phase = ReportPhase(config, FakeReportGateway([IN_PROGRESS, FAILED]), poller=make_poller())
    lifecycle = lifecycle_in(ScanState.FINISHED, config)

    with pytest.raises(ReportFailedError):
        phase.generate(lifecycle)

    assert phase.active_report(lifecycle.handle) is None

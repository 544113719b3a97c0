import pandas as pd
import pytest

import main
from cxscan.models.scan import ScanState
from cxscan.operations.orchestrator import ScanOrchestrator
from cxscan.operations.poller import Poller
from fakes import FakeDirectory, FakeReportGateway, FakeScanGateway, THREE_FINDINGS, build_xml


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    report = tmp_path / 'report.xml'
    report.write_bytes(build_xml(THREE_FINDINGS))
    return tmp_path


def test_parse_command_writes_filtered_results(workdir):
    out = workdir / 'out'

    code = main.main(['parse', '--xml', str(workdir / 'report.xml'), '--output-dir', str(out),
                      '--filter', 'severity=High||Medium'])

    assert code == 0
    [csv_file] = out.glob('cx_results_*.csv')
    assert list(pd.read_csv(csv_file)['Category']) == ['SQL_Injection', 'Reflected_XSS']
    assert list(out.glob('cx_results_*_report.txt'))


def test_parse_command_needs_an_input(workdir):
    assert main.main(['parse', '--output-dir', str(workdir / 'out')]) == 1


def test_bad_filter_expression(workdir):
    code = main.main(['parse', '--xml', str(workdir / 'report.xml'), '--output-dir', str(workdir / 'out'),
                      '--filter', 'severity'])

    assert code == 1


def test_online_command_requires_credentials(workdir, monkeypatch):
    for name in ('CXSAST_BASE_URL', 'CXSAST_USERNAME', 'CXSAST_PASSWORD', 'CXSAST_CLIENT_SECRET'):
        monkeypatch.delenv(name, raising=False)

    assert main.main(['latest', '--team', '/CxServer', '--project', 'WebGoat']) == 1


def test_parse_args_scan():
    args = main.parse_args(['scan', '--project-id', '42', '--preset', 'Default',
                            '--exclude-folders', 'test, docs', '--wait-for-active'])

    assert args.project_id == 42
    assert main.split_patterns(args.exclude_folders) == ['test', 'docs']
    assert args.wait_for_active is True


def test_ctrl_c_during_scan_cancels_it(workdir, monkeypatch, config, clock):
    def interrupt(seconds, cancel_event):
        raise KeyboardInterrupt

    scan_gateway = FakeScanGateway([ScanState.QUEUED])
    orchestrator = ScanOrchestrator(
        config, scan_gateway, FakeReportGateway(), FakeDirectory(),
        scan_poller=Poller(1.0, 100.0, clock=clock, sleeper=interrupt)
    )
    monkeypatch.setattr(main, 'build_orchestrator', lambda *args: orchestrator)
    monkeypatch.setenv('CXSAST_CLIENT_SECRET', 'client-secret')

    code = main.main(['scan', '--project-id', '42', '--preset', 'Default',
                      '--base-url', 'https://cx.example.com', '--username', 'admin', '--password', 'secret',
                      '--output-dir', str(workdir / 'out')])

    assert code == 130
    assert scan_gateway.canceled == [1000]

import argparse

import pytest

from cxscan.models.finding import Severity
from cxscan.utils.config import Config

ENV_VARS = [
    'CXSAST_BASE_URL', 'CXSAST_USERNAME', 'CXSAST_PASSWORD', 'CXSAST_CLIENT_SECRET', 'CXSAST_DEBUG',
    'CXSAST_POLL_INTERVAL', 'CXSAST_SCAN_TIMEOUT', 'CXSAST_REPORT_TIMEOUT', 'CXSAST_MAX_POLL_ERRORS',
    'CXSAST_OUTPUT_DIR', 'CXSAST_DELETE_RUNNING_SCANS', 'CXSAST_WAIT_FOR_ACTIVE_SCANS',
    'CXSAST_FILTER_SEVERITY', 'CXSAST_FILTER_CATEGORY', 'CXSAST_FILTER_CWE', 'CXSAST_FILTER_STATE',
    'CXSAST_FILTER_STATUS',
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # setenv first so variables loaded from .env files are removed on teardown
    for name in ENV_VARS:
        monkeypatch.setenv(name, '')
        monkeypatch.delenv(name)


def test_from_env_file(tmp_path):
    env_file = tmp_path / '.env'
    env_file.write_text(
        "CXSAST_BASE_URL=https://cx.example.com\n"
        "CXSAST_USERNAME=admin\n"
        "CXSAST_PASSWORD=secret\n"
        "CXSAST_CLIENT_SECRET=client-secret\n"
        "CXSAST_SCAN_TIMEOUT=900\n"
        "CXSAST_WAIT_FOR_ACTIVE_SCANS=true\n"
        "CXSAST_FILTER_SEVERITY=High,Medium\n"
    )

    config = Config.from_env(str(env_file))

    assert config.base_url == 'https://cx.example.com'
    assert config.scan_max_wait == 900.0
    assert config.wait_for_active_scans is True
    assert config.delete_running_scans is True
    assert config.filter_configuration().severities == {Severity.HIGH, Severity.MEDIUM}
    assert config.validate() == (True, None)


def test_misspelled_filter_state_is_rejected(tmp_path):
    env_file = tmp_path / '.env'
    env_file.write_text("CXSAST_FILTER_STATE=Confrmed\n")

    config = Config.from_env(str(env_file))

    with pytest.raises(ValueError, match="Confrmed"):
        config.filter_configuration()


def test_missing_env_file_gives_defaults(tmp_path):
    config = Config.from_env(str(tmp_path / 'missing.env'))

    assert config.base_url is None
    assert config.filter_configuration().is_empty
    is_valid, error = config.validate()
    assert not is_valid
    assert error == "Base URL is required"


def test_arguments_override_environment(config):
    args = argparse.Namespace(base_url='https://other', poll_interval=2.5, scan_timeout=None,
                              wait_for_active=True, debug=False)

    Config.from_args(args, config)

    assert config.base_url == 'https://other'
    assert config.polling_interval == 2.5
    assert config.scan_max_wait == 3600
    assert config.wait_for_active_scans is True


@pytest.mark.parametrize('field, value, message', [
    ('polling_interval', 0, "Polling interval must be positive"),
    ('report_max_wait', -1, "Maximum wait times must be positive"),
    ('max_poll_errors', -1, "Maximum poll errors cannot be negative"),
])
def test_invalid_limits(config, field, value, message):
    setattr(config, field, value)

    assert config.validate() == (False, message)

import threading

import pytest

from cxscan.errors import (
    NotFoundError,
    PollingCanceledError,
    PollingTimeoutError,
    PollingTransientFailureError,
    RemoteServiceError,
    TransientRemoteError,
)
from cxscan.operations.poller import Poller


def scripted(values):
    """fetch() returning (or raising) the given values in order."""
    calls = []

    def fetch():
        item = values[len(calls)]
        calls.append(item)
        if isinstance(item, Exception):
            raise item
        return item

    fetch.calls = calls
    return fetch


def is_done(value):
    return value == 'done'


def test_returns_after_n_plus_one_calls(make_poller, clock):
    fetch = scripted(['running', 'running', 'running', 'done'])

    assert make_poller(interval=1.0, max_wait=10.0).poll(fetch, is_done) == 'done'
    assert len(fetch.calls) == 4
    assert clock.sleeps == [1.0, 1.0, 1.0]


def test_terminal_on_first_call_does_not_sleep(make_poller, clock):
    fetch = scripted(['done'])

    assert make_poller().poll(fetch, is_done) == 'done'
    assert clock.sleeps == []


def test_times_out_without_exceeding_max_wait(make_poller, clock):
    fetch = scripted(['running'] * 10)

    with pytest.raises(PollingTimeoutError) as excinfo:
        make_poller(interval=1.0, max_wait=3.5).poll(fetch, is_done, context={'scan_id': 5})

    assert len(fetch.calls) == 4
    assert clock.now <= 3.5
    assert excinfo.value.scan_id == 5
    assert excinfo.value.state == 'running'
    assert isinstance(excinfo.value, TimeoutError)


def test_transient_errors_within_budget_are_retried(make_poller, reporter):
    fetch = scripted([TransientRemoteError("503"), TransientRemoteError("503"), 'done'])

    poller = make_poller(max_errors=2, exception_reporter=reporter)

    assert poller.poll(fetch, is_done, context={'report_id': 9}) == 'done'
    assert len(reporter.poll_errors) == 2
    assert reporter.poll_errors[0]['id'] == 9


def test_transient_error_budget_exhausted(make_poller):
    fetch = scripted([TransientRemoteError("timeout")] * 5)

    with pytest.raises(PollingTransientFailureError):
        make_poller(max_errors=2).poll(fetch, is_done)
    assert len(fetch.calls) == 3


def test_success_resets_error_count(make_poller):
    transient = TransientRemoteError("connection reset")
    fetch = scripted([transient, transient, 'running', transient, transient, 'done'])

    assert make_poller(max_errors=2).poll(fetch, is_done) == 'done'
    assert len(fetch.calls) == 6


@pytest.mark.parametrize('error', [
    RemoteServiceError("bad request", status_code=400),
    NotFoundError("scan gone"),
])
def test_non_transient_error_aborts_immediately(make_poller, error):
    fetch = scripted([error, 'done'])

    with pytest.raises(type(error)):
        make_poller(max_errors=5).poll(fetch, is_done)
    assert len(fetch.calls) == 1


def test_cancel_before_first_attempt(make_poller):
    fetch = scripted(['done'])
    cancel_event = threading.Event()
    cancel_event.set()

    with pytest.raises(PollingCanceledError):
        make_poller().poll(fetch, is_done, cancel_event=cancel_event)
    assert fetch.calls == []


def test_cancel_while_waiting_is_not_a_timeout(make_poller):
    fetch = scripted(['running'] * 5)
    cancel_event = threading.Event()

    with pytest.raises(PollingCanceledError) as excinfo:
        make_poller().poll(fetch, is_done, cancel_event=cancel_event,
                           on_value=lambda value: cancel_event.set())

    assert not isinstance(excinfo.value, PollingTimeoutError)
    assert len(fetch.calls) == 1


def test_backoff_is_capped(make_poller, clock):
    fetch = scripted(['running'] * 5 + ['done'])

    make_poller(interval=1.0, backoff=2.0, max_interval=5.0).poll(fetch, is_done)

    assert clock.sleeps == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_on_value_sees_every_value(make_poller):
    seen = []
    fetch = scripted(['queued', 'running', 'done'])

    make_poller().poll(fetch, is_done, on_value=seen.append)

    assert seen == ['queued', 'running', 'done']


@pytest.mark.parametrize('kwargs', [
    {'interval': 0, 'max_wait': 10},
    {'interval': 1, 'max_wait': 0},
    {'interval': 1, 'max_wait': 10, 'max_errors': -1},
    {'interval': 1, 'max_wait': 10, 'backoff': 0.5},
])
def test_invalid_arguments(kwargs):
    with pytest.raises(ValueError):
        Poller(**kwargs)


def test_from_config_uses_phase_limits(config):
    config.scan_max_wait = 120
    config.report_max_wait = 30

    assert Poller.from_config(config, 'scan').max_wait == 120
    assert Poller.from_config(config, 'report').max_wait == 30
    with pytest.raises(ValueError):
        Poller.from_config(config, 'export')

import pytest

from cxscan.operations.poller import Poller
from cxscan.utils.config import Config
from cxscan.utils.exception_reporter import ExceptionReporter
from fakes import FakeClock


@pytest.fixture
def config():
    config = Config()
    config.base_url = 'https://cx.example.com'
    config.username = 'admin'
    config.password = 'secret'
    config.client_secret = 'client-secret'
    return config


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def reporter():
    return ExceptionReporter()


@pytest.fixture
def make_poller(clock):
    def factory(interval=1.0, max_wait=100.0, max_errors=2, backoff=1.0, **kwargs):
        return Poller(interval, max_wait, max_errors=max_errors, backoff=backoff,
                      clock=clock, sleeper=clock.sleep, **kwargs)
    return factory

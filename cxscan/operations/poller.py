"""Bounded polling with backoff, timeout, error budget and cancellation."""

import threading
import time
from cxscan.errors import (
    PollingCanceledError,
    PollingTimeoutError,
    PollingTransientFailureError,
    TransientRemoteError,
)


def _event_sleeper(seconds, cancel_event):
    """Wait on the cancel event; True means the wait was interrupted."""
    return cancel_event.wait(seconds)


class Poller:
    """Repeatedly call a status fetch until it reports a terminal value.

    The wait between attempts starts at ``interval`` and is multiplied by
    ``backoff`` after every attempt, capped at ``max_interval``. Polling
    gives up with PollingTimeoutError once the next wait would take the
    total past ``max_wait``, and with PollingTransientFailureError once more
    than ``max_errors`` consecutive TransientRemoteError have been raised by
    the fetch. Any other exception from the fetch propagates immediately.

    Waiting happens on a ``threading.Event``; setting the caller's cancel
    event wakes the poller and raises PollingCanceledError.
    """

    def __init__(self, interval, max_wait, max_errors=3, backoff=1.0, max_interval=None,
                 clock=None, sleeper=None, debug_logger=None, exception_reporter=None,
                 progress=None, description='status'):
        """Initialize the poller.

        Args:
            interval (float): Initial wait between attempts, in seconds
            max_wait (float): Maximum total wait, in seconds
            max_errors (int): Consecutive transient errors tolerated
            backoff (float): Multiplier applied to the wait after each attempt
            max_interval (float, optional): Upper bound for a single wait
            clock (callable, optional): Monotonic clock, defaults to time.monotonic
            sleeper (callable, optional): ``sleeper(seconds, cancel_event) -> bool``;
                returns True when interrupted by the cancel event
            debug_logger (DebugLogger, optional): Debug logger instance
            exception_reporter (ExceptionReporter, optional): Records swallowed transient errors
            progress (ProgressTracker, optional): Shows elapsed wait
            description (str): Name of what is being polled, used in messages
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        if max_wait <= 0:
            raise ValueError("max_wait must be positive")
        if max_errors < 0:
            raise ValueError("max_errors cannot be negative")
        if backoff < 1.0:
            raise ValueError("backoff cannot be below 1.0")
        self.interval = interval
        self.max_wait = max_wait
        self.max_errors = max_errors
        self.backoff = backoff
        self.max_interval = max_interval
        self.clock = clock or time.monotonic
        self.sleeper = sleeper or _event_sleeper
        self.logger = debug_logger
        self.exception_reporter = exception_reporter
        self.progress = progress
        self.description = description

    @classmethod
    def from_config(cls, config, phase, **kwargs):
        """Build the poller for the 'scan' or 'report' phase.

        Args:
            config (Config): Configuration instance
            phase (str): 'scan' or 'report'
            **kwargs: Extra Poller arguments (logger, reporter, clock...)
        """
        if phase == 'scan':
            max_wait = config.scan_max_wait
        elif phase == 'report':
            max_wait = config.report_max_wait
        else:
            raise ValueError(f"Unknown polling phase: {phase}")
        kwargs.setdefault('description', phase)
        return cls(
            interval=config.polling_interval,
            max_wait=max_wait,
            max_errors=config.max_poll_errors,
            backoff=config.polling_backoff,
            max_interval=config.polling_max_wait,
            **kwargs
        )

    def poll(self, fetch, is_terminal, cancel_event=None, on_value=None, context=None):
        """Poll until ``is_terminal(fetch())`` holds.

        Args:
            fetch (callable): Side-effect-free status query
            is_terminal (callable): Predicate on the fetched value
            cancel_event (threading.Event, optional): Caller abort signal
            on_value (callable, optional): Called with every fetched value
            context (dict, optional): Error context (scan_id, report_id, project_id)

        Returns:
            The first terminal value

        Raises:
            PollingTimeoutError: If max_wait elapses first
            PollingTransientFailureError: If the transient error budget is exhausted
            PollingCanceledError: If cancel_event is set
        """
        context = dict(context or {})
        cancel_event = cancel_event or threading.Event()
        start = self.clock()
        wait_time = self.interval
        consecutive_errors = 0
        attempt = 0
        last_value = None

        while True:
            if cancel_event.is_set():
                raise PollingCanceledError(
                    f"Polling {self.description} canceled by caller after {attempt} attempts",
                    state=last_value, **context
                )

            attempt += 1
            try:
                value = fetch()
            except TransientRemoteError as e:
                consecutive_errors += 1
                if self.logger:
                    self.logger.log(f"  Transient error polling {self.description} "
                                    f"({consecutive_errors}/{self.max_errors}): {e}")
                if self.exception_reporter:
                    identifier = context.get('report_id') or context.get('scan_id')
                    self.exception_reporter.add_poll_error(self.description, identifier, str(e))
                if consecutive_errors > self.max_errors:
                    raise PollingTransientFailureError(
                        f"Polling {self.description} failed after {consecutive_errors} consecutive "
                        f"transient errors: {e.detail}",
                        state=last_value, **context
                    ) from e
            else:
                consecutive_errors = 0
                last_value = value
                if on_value:
                    on_value(value)
                if is_terminal(value):
                    if self.logger:
                        self.logger.log(f"  {self.description} reached terminal value {self._show(value)} "
                                        f"after {attempt} attempts ({self.clock() - start:.1f}s)")
                    return value

            elapsed = self.clock() - start
            if self.progress:
                self.progress.advance_to(elapsed)
                self.progress.set_postfix(status=self._show(last_value), attempt=attempt)

            if elapsed + wait_time > self.max_wait:
                raise PollingTimeoutError(
                    f"Polling {self.description} timed out after {elapsed:.1f}s "
                    f"(max wait {self.max_wait}s, {attempt} attempts)",
                    state=last_value, **context
                )

            if self.sleeper(wait_time, cancel_event):
                raise PollingCanceledError(
                    f"Polling {self.description} canceled by caller after {attempt} attempts",
                    state=last_value, **context
                )

            wait_time = wait_time * self.backoff
            if self.max_interval:
                wait_time = min(wait_time, self.max_interval)

    @staticmethod
    def _show(value):
        return getattr(value, 'value', value)

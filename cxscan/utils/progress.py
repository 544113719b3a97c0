"""Console progress for poll waits and CLI stages."""

import sys
import time
from tqdm import tqdm

# Elapsed/maximum seconds, then the latest polled status
WAIT_BAR_FORMAT = '{desc}: {percentage:3.0f}%|{bar}| {n:.0f}/{total:.0f}s {postfix}'


class ProgressTracker:
    """Show how much of a poll's maximum wait has been used.

    One bar is shown at a time; opening a new one closes the previous bar.
    """

    def __init__(self, debug=False, enabled=True):
        self.debug = debug
        self.enabled = enabled
        self.current_bar = None

    def create_bar(self, total, description, unit='s'):
        """Open a bar for a wait of at most ``total`` seconds.

        Returns:
            tqdm: The bar, or None when progress display is disabled
        """
        self.close()
        if not self.enabled:
            return None
        self.current_bar = tqdm(
            total=total,
            desc=description,
            unit=unit,
            ncols=100,
            file=sys.stdout,
            leave=self.debug,
            bar_format=WAIT_BAR_FORMAT
        )
        return self.current_bar

    def advance_to(self, elapsed):
        """Set the bar position to ``elapsed`` seconds, clamped to its total."""
        bar = self.current_bar
        if bar is None:
            return
        bar.n = min(elapsed, bar.total) if bar.total else elapsed
        bar.refresh()

    def set_postfix(self, **kwargs):
        if self.current_bar is not None:
            self.current_bar.set_postfix(**kwargs)

    def close(self):
        if self.current_bar is not None:
            self.current_bar.close()
            self.current_bar = None


class StageTracker:
    """Print stage banners and remember how long each stage took."""

    def __init__(self, debug=False):
        self.debug = debug
        self.stats = {}
        self._started = {}

    def start_stage(self, stage_name):
        print(f"\n{'='*80}\nStage: {stage_name}\n{'='*80}")
        self._started[stage_name] = time.monotonic()
        self.stats[stage_name] = {}

    def end_stage(self, stage_name, **stats):
        """Record ``stats`` for a stage and print them with its duration."""
        started = self._started.pop(stage_name, None)
        if started is not None:
            stats['duration'] = f"{time.monotonic() - started:.1f}s"
        self.stats.setdefault(stage_name, {}).update(stats)

        print(f"\n{stage_name} completed:")
        for key, value in stats.items():
            print(f"  - {key}: {value}")

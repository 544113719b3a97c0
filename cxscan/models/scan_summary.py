"""Scan summary data model."""

from cxscan.models.finding import Severity


class ScanSummary:
    """Per-severity counts reported by the server for one scan."""

    def __init__(self, scan_id, high=0, medium=0, low=0, info=0, calculated_at=None):
        self.scan_id = scan_id
        self.high = high
        self.medium = medium
        self.low = low
        self.info = info
        self.calculated_at = calculated_at

    @property
    def total(self):
        return self.high + self.medium + self.low + self.info

    def counts(self):
        """Counts keyed by Severity."""
        return {
            Severity.HIGH: self.high,
            Severity.MEDIUM: self.medium,
            Severity.LOW: self.low,
            Severity.INFO: self.info
        }

    def to_dict(self):
        """Convert to dictionary."""
        return {
            'scan_id': self.scan_id,
            'high': self.high,
            'medium': self.medium,
            'low': self.low,
            'info': self.info,
            'calculated_at': self.calculated_at
        }

    @classmethod
    def from_statistics(cls, scan_id, data):
        """Create ScanSummary from a resultsStatistics payload."""
        return cls(
            scan_id=scan_id,
            high=int(data.get('highSeverity') or 0),
            medium=int(data.get('mediumSeverity') or 0),
            low=int(data.get('lowSeverity') or 0),
            info=int(data.get('infoSeverity') or 0),
            calculated_at=data.get('statisticsCalculationDate')
        )

    def __repr__(self):
        return (f"ScanSummary(scan={self.scan_id}, high={self.high}, medium={self.medium}, "
                f"low={self.low}, info={self.info})")

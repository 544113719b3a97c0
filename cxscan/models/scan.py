"""Scan data models."""

from enum import Enum


class ScanState(Enum):
    """Lifecycle state of a single scan."""

    QUEUED = 'Queued'
    SCANNING = 'Scanning'
    FINISHED = 'Finished'
    FAILED = 'Failed'
    CANCELED = 'Canceled'
    DELETED = 'Deleted'

    @property
    def is_terminal(self):
        return self not in (ScanState.QUEUED, ScanState.SCANNING)

    @property
    def is_active(self):
        return self in (ScanState.QUEUED, ScanState.SCANNING)

    @property
    def rank(self):
        """Position in the forward-only progression (terminal states share one rank)."""
        if self is ScanState.QUEUED:
            return 0
        if self is ScanState.SCANNING:
            return 1
        return 2


class ScanRequest:
    """Parameters for a new scan. Immutable once constructed."""

    def __init__(self, project_id, preset, engine_configuration=None, exclude_folders=None,
                 exclude_files=None, comment=None, incremental=False, force_scan=True,
                 is_public=True):
        """Initialize a ScanRequest.

        Args:
            project_id (int): The project ID
            preset (int or str): Preset ID or preset name
            engine_configuration (int or str, optional): Engine configuration ID or name
            exclude_folders (list, optional): Folder patterns to exclude
            exclude_files (list, optional): File patterns to exclude
            comment (str, optional): Scan comment
            incremental (bool): Request an incremental scan
            force_scan (bool): Scan even when the source has not changed
            is_public (bool): Scan visibility
        """
        if project_id is None:
            raise ValueError("project_id is required")
        if preset is None or preset == '':
            raise ValueError("preset is required")
        object.__setattr__(self, 'project_id', project_id)
        object.__setattr__(self, 'preset', preset)
        object.__setattr__(self, 'engine_configuration', engine_configuration)
        object.__setattr__(self, 'exclude_folders', tuple(exclude_folders or ()))
        object.__setattr__(self, 'exclude_files', tuple(exclude_files or ()))
        object.__setattr__(self, 'comment', comment)
        object.__setattr__(self, 'incremental', bool(incremental))
        object.__setattr__(self, 'force_scan', bool(force_scan))
        object.__setattr__(self, 'is_public', bool(is_public))

    def __setattr__(self, name, value):
        raise AttributeError(f"ScanRequest is immutable (cannot set '{name}')")

    def __delattr__(self, name):
        raise AttributeError(f"ScanRequest is immutable (cannot delete '{name}')")

    def to_dict(self):
        """Convert to dictionary."""
        return {
            'project_id': self.project_id,
            'preset': self.preset,
            'engine_configuration': self.engine_configuration,
            'exclude_folders': list(self.exclude_folders),
            'exclude_files': list(self.exclude_files),
            'comment': self.comment,
            'incremental': self.incremental,
            'force_scan': self.force_scan,
            'is_public': self.is_public
        }

    @classmethod
    def from_dict(cls, data):
        """Create ScanRequest from dictionary."""
        return cls(
            project_id=data['project_id'],
            preset=data['preset'],
            engine_configuration=data.get('engine_configuration'),
            exclude_folders=data.get('exclude_folders'),
            exclude_files=data.get('exclude_files'),
            comment=data.get('comment'),
            incremental=data.get('incremental', False),
            force_scan=data.get('force_scan', True),
            is_public=data.get('is_public', True)
        )

    def __eq__(self, other):
        if not isinstance(other, ScanRequest):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash((self.project_id, self.preset, self.engine_configuration,
                     self.exclude_folders, self.exclude_files, self.comment))

    def __repr__(self):
        return f"ScanRequest(project={self.project_id}, preset={self.preset})"


class ScanHandle:
    """Identifies a submitted scan."""

    def __init__(self, scan_id, project_id):
        """Initialize a ScanHandle.

        Args:
            scan_id (int or str): The scan ID
            project_id (int or str): The project ID
        """
        self.scan_id = scan_id
        self.project_id = project_id

    def to_dict(self):
        """Convert to dictionary."""
        return {
            'scan_id': self.scan_id,
            'project_id': self.project_id
        }

    @classmethod
    def from_dict(cls, data):
        """Create ScanHandle from dictionary."""
        return cls(scan_id=data['scan_id'], project_id=data['project_id'])

    def __eq__(self, other):
        if not isinstance(other, ScanHandle):
            return NotImplemented
        return (self.scan_id, self.project_id) == (other.scan_id, other.project_id)

    def __hash__(self):
        return hash((self.scan_id, self.project_id))

    def __repr__(self):
        return f"ScanHandle(id={self.scan_id}, project={self.project_id})"

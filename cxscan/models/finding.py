"""Finding data model and the enumerations it is built from."""

from enum import Enum


def _normalize_token(token):
    return str(token).strip().replace(' ', '').replace('_', '').replace('-', '').lower()


class Severity(Enum):
    """Canonical severity of a finding."""

    HIGH = 'High'
    MEDIUM = 'Medium'
    LOW = 'Low'
    INFO = 'Info'
    UNKNOWN = 'Unknown'

    @classmethod
    def from_token(cls, token):
        """Map a report token (name or SeverityIndex) to a Severity.

        Unrecognized tokens map to UNKNOWN.
        """
        if isinstance(token, Severity):
            return token
        if token is None:
            return cls.UNKNOWN
        return _SEVERITY_TOKENS.get(_normalize_token(token), cls.UNKNOWN)

    @classmethod
    def ordered(cls):
        return [cls.HIGH, cls.MEDIUM, cls.LOW, cls.INFO, cls.UNKNOWN]


_SEVERITY_TOKENS = {
    'high': Severity.HIGH,
    'critical': Severity.HIGH,
    '3': Severity.HIGH,
    'medium': Severity.MEDIUM,
    '2': Severity.MEDIUM,
    'low': Severity.LOW,
    '1': Severity.LOW,
    'info': Severity.INFO,
    'information': Severity.INFO,
    'informational': Severity.INFO,
    '0': Severity.INFO,
}


class ResultState(Enum):
    """Triage state assigned to a result."""

    TO_VERIFY = 'ToVerify'
    NOT_EXPLOITABLE = 'NotExploitable'
    CONFIRMED = 'Confirmed'
    URGENT = 'Urgent'
    PROPOSED_NOT_EXPLOITABLE = 'ProposedNotExploitable'
    UNKNOWN = 'Unknown'

    @classmethod
    def from_token(cls, token):
        """Map a state name or the numeric XML ``state`` attribute to a ResultState."""
        if isinstance(token, ResultState):
            return token
        if token is None:
            return cls.UNKNOWN
        return _STATE_TOKENS.get(_normalize_token(token), cls.UNKNOWN)


_STATE_TOKENS = {
    '0': ResultState.TO_VERIFY,
    'toverify': ResultState.TO_VERIFY,
    '1': ResultState.NOT_EXPLOITABLE,
    'notexploitable': ResultState.NOT_EXPLOITABLE,
    '2': ResultState.CONFIRMED,
    'confirmed': ResultState.CONFIRMED,
    '3': ResultState.URGENT,
    'urgent': ResultState.URGENT,
    '4': ResultState.PROPOSED_NOT_EXPLOITABLE,
    'proposednotexploitable': ResultState.PROPOSED_NOT_EXPLOITABLE,
}


class ResultStatus(Enum):
    """Whether a result is new to this scan, recurring, or fixed."""

    NEW = 'New'
    RECURRENT = 'Recurrent'
    FIXED = 'Fixed'
    UNKNOWN = 'Unknown'

    @classmethod
    def from_token(cls, token):
        if isinstance(token, ResultStatus):
            return token
        if token is None:
            return cls.UNKNOWN
        return _STATUS_TOKENS.get(_normalize_token(token), cls.UNKNOWN)


_STATUS_TOKENS = {
    'new': ResultStatus.NEW,
    'recurrent': ResultStatus.RECURRENT,
    'fixed': ResultStatus.FIXED,
    'resolved': ResultStatus.FIXED,
}


def normalize_cwe(value):
    """Normalize 'CWE-89', '89' or 89 to '89'; empty and zero values become None."""
    if value is None:
        return None
    text = str(value).strip().upper()
    if text.startswith('CWE-'):
        text = text[4:]
    text = text.strip()
    if not text or text == '0':
        return None
    return text


class Finding:
    """One normalized vulnerability record."""

    def __init__(self, severity, category, cwe, state, status, file_path, line,
                 group=None, language=None, similarity_id=None, deep_link=None,
                 description=None):
        """Initialize a Finding.

        Args:
            severity (Severity or str): Severity of the result
            category (str): Query or vulnerability name
            cwe (str or int): CWE identifier
            state (ResultState or str): Triage state
            status (ResultStatus or str): New/Recurrent/Fixed status
            file_path (str): Source file (or library) the finding is located in
            line (int): Line number, 0 when not applicable
        """
        self.severity = Severity.from_token(severity)
        self.category = category
        self.cwe = normalize_cwe(cwe)
        self.state = ResultState.from_token(state)
        self.status = ResultStatus.from_token(status)
        self.file_path = file_path
        self.line = int(line) if line is not None else 0
        self.group = group
        self.language = language
        self.similarity_id = similarity_id
        self.deep_link = deep_link
        self.description = description

    @property
    def key(self):
        """Identity used for de-duplication and for comparing scans."""
        return (self.file_path, self.line, self.category)

    def to_dict(self):
        """Convert to dictionary."""
        return {
            'severity': self.severity.value,
            'category': self.category,
            'cwe': self.cwe,
            'state': self.state.value,
            'status': self.status.value,
            'file_path': self.file_path,
            'line': self.line,
            'group': self.group,
            'language': self.language,
            'similarity_id': self.similarity_id,
            'deep_link': self.deep_link,
            'description': self.description
        }

    @classmethod
    def from_dict(cls, data):
        """Create Finding from dictionary."""
        return cls(
            severity=data.get('severity'),
            category=data.get('category'),
            cwe=data.get('cwe'),
            state=data.get('state'),
            status=data.get('status'),
            file_path=data.get('file_path'),
            line=data.get('line', 0),
            group=data.get('group'),
            language=data.get('language'),
            similarity_id=data.get('similarity_id'),
            deep_link=data.get('deep_link'),
            description=data.get('description')
        )

    def __eq__(self, other):
        if not isinstance(other, Finding):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash(self.key)

    def __repr__(self):
        return (f"Finding({self.severity.value}, {self.category}, CWE-{self.cwe}, "
                f"{self.file_path}:{self.line})")

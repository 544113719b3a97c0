"""Filter configuration model."""

from cxscan.models.finding import Severity, ResultState, ResultStatus, normalize_cwe

# Accepted spellings of each filter dimension in expressions and dictionaries
FIELD_ALIASES = {
    'severity': 'severities',
    'severities': 'severities',
    'category': 'categories',
    'categories': 'categories',
    'query': 'categories',
    'cwe': 'cwes',
    'cwes': 'cwes',
    'state': 'states',
    'states': 'states',
    'status': 'statuses',
    'statuses': 'statuses',
}


def _as_list(values):
    if values is None:
        return []
    if isinstance(values, (str, int)):
        return [values]
    return list(values)


def _parse_members(enum_cls, values, label):
    """Parse caller-supplied tokens, rejecting any that are not recognized.

    Only a literal ``Unknown`` selects the UNKNOWN member.
    """
    members = set()
    for value in _as_list(values):
        member = enum_cls.from_token(value)
        if member is enum_cls.UNKNOWN and not isinstance(value, enum_cls) \
                and str(value).strip().lower() != 'unknown':
            raise ValueError(f"Unknown {label} filter value: {value!r}")
        members.add(member)
    return frozenset(members)


class FilterConfiguration:
    """Allowed values per filter dimension.

    An empty dimension places no restriction. A finding passes when it
    matches every non-empty dimension.
    """

    def __init__(self, severities=None, categories=None, cwes=None, states=None, statuses=None):
        """Initialize a FilterConfiguration.

        Args:
            severities (iterable, optional): Severity values or names
            categories (iterable, optional): Query/category names (case-insensitive)
            cwes (iterable, optional): CWE ids, as 89, '89' or 'CWE-89'
            states (iterable, optional): ResultState values or names
            statuses (iterable, optional): ResultStatus values or names

        Raises:
            ValueError: If a severity, state or status name is not recognized
        """
        self.severities = _parse_members(Severity, severities, 'severity')
        self.categories = frozenset(str(c).strip().lower() for c in _as_list(categories) if str(c).strip())
        self.cwes = frozenset(c for c in (normalize_cwe(v) for v in _as_list(cwes)) if c)
        self.states = _parse_members(ResultState, states, 'state')
        self.statuses = _parse_members(ResultStatus, statuses, 'status')

    @property
    def is_empty(self):
        return not (self.severities or self.categories or self.cwes or self.states or self.statuses)

    @classmethod
    def from_dict(cls, data):
        """Create FilterConfiguration from a dictionary keyed by dimension name."""
        kwargs = {}
        for field, values in (data or {}).items():
            dimension = FIELD_ALIASES.get(str(field).strip().lower())
            if not dimension:
                raise ValueError(f"Unknown filter field: {field}")
            kwargs.setdefault(dimension, []).extend(_as_list(values))
        return cls(**kwargs)

    @classmethod
    def from_expressions(cls, expressions):
        """Create FilterConfiguration from ``field=value||value`` expressions.

        Values may also be comma separated. Repeating a field adds values
        to the same dimension.

        Raises:
            ValueError: If an expression is malformed or names an unknown field
        """
        data = {}
        for expression in expressions or []:
            field, value = parse_filter_expression(expression)
            if field is None:
                raise ValueError(f"Invalid filter expression: {expression!r} (expected field=value)")
            if '&&' in value:
                raise ValueError(f"Filter values are alternatives; use '||' instead of '&&': {expression!r}")
            values = [v.strip() for part in value.split('||') for v in part.split(',') if v.strip()]
            data.setdefault(field, []).extend(values)
        return cls.from_dict(data)

    def to_dict(self):
        """Convert to dictionary of sorted value lists."""
        return {
            'severities': sorted(s.value for s in self.severities),
            'categories': sorted(self.categories),
            'cwes': sorted(self.cwes),
            'states': sorted(s.value for s in self.states),
            'statuses': sorted(s.value for s in self.statuses)
        }

    def __eq__(self, other):
        if not isinstance(other, FilterConfiguration):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash((self.severities, self.categories, self.cwes, self.states, self.statuses))

    def __repr__(self):
        active = {k: v for k, v in self.to_dict().items() if v}
        return f"FilterConfiguration({active or 'all'})"


def parse_filter_expression(expression):
    """Split ``field=value`` into (field, value).

    Returns:
        tuple: (field_name, value) or (None, None) if invalid
    """
    if not expression or '=' not in expression:
        return None, None

    field_name, value = expression.split('=', 1)
    field_name = field_name.strip()
    value = value.strip()

    if not field_name or not value:
        return None, None

    return field_name, value

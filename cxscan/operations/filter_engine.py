"""Apply a FilterConfiguration to ScanResults."""


def matches(finding, config):
    """Return True when the finding satisfies every non-empty dimension.

    Args:
        finding (Finding): Finding to test
        config (FilterConfiguration): Filter to apply

    Returns:
        bool: True if the finding passes
    """
    if config.severities and finding.severity not in config.severities:
        return False
    if config.categories and (finding.category or '').strip().lower() not in config.categories:
        return False
    if config.cwes and finding.cwe not in config.cwes:
        return False
    if config.states and finding.state not in config.states:
        return False
    if config.statuses and finding.status not in config.statuses:
        return False
    return True


def apply_filter(results, config):
    """Filter results without modifying them.

    Surviving findings keep their relative order and the summary is
    recomputed from them. A missing or empty configuration keeps every
    finding.

    Args:
        results (ScanResults): Parsed results
        config (FilterConfiguration, optional): Filter to apply

    Returns:
        ScanResults: New results holding the surviving findings
    """
    if config is None or config.is_empty:
        return results.with_findings(results.findings)
    return results.with_findings([f for f in results.findings if matches(f, config)])

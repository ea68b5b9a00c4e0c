"""Idempotency check for injected patches."""


def already_applied(content: str, marker: str) -> bool:
    """
    Return True if ``content`` already carries the patch identified by ``marker``.

    A plain substring test with no side effects. A coincidental match is an
    accepted false positive; markers are chosen to be unlikely in untouched
    files (a section title, a hook key, a route name). An empty marker never
    matches.
    """
    if not marker:
        return False
    return marker in content


def find_applied(content: str, markers: list[str]) -> list[str]:
    """Return the subset of ``markers`` present in ``content``, in order."""
    return [marker for marker in markers if already_applied(content, marker)]

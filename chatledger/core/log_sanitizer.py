"""
Helpers for keeping user-controlled values out of log structure.
"""

import re
from typing import Any

_CONTROL_CHARS_RE = re.compile(r'[\x00-\x1f\x7f-\x9f]')
# Matches Unicode line separators (LINE SEPARATOR and PARAGRAPH SEPARATOR)
_UNICODE_NEWLINES_RE = re.compile(r'[\u2028\u2029]')
_STANDARD_NEWLINES_RE = re.compile(r'(\r\n|\r|\n)')

_MAX_LOGGED_LENGTH = 200


def sanitize_for_logging(value: Any) -> str:
    """
    Strip newlines and control characters from a value before logging it.

    Chat ids, user ids and stream ids arrive from clients; an embedded
    newline or escape sequence could otherwise forge log entries. Long
    values are truncated.

    Examples:
        >>> sanitize_for_logging("chat-1\\nFAKE ENTRY")
        'chat-1FAKE ENTRY'
        >>> sanitize_for_logging("A\u2028B")
        'AB'
        >>> sanitize_for_logging(None)
        ''
    """
    if value is None:
        return ''
    if not isinstance(value, str):
        value = str(value)
    value = _CONTROL_CHARS_RE.sub('', value)
    value = _UNICODE_NEWLINES_RE.sub('', value)
    value = _STANDARD_NEWLINES_RE.sub('', value)
    if len(value) > _MAX_LOGGED_LENGTH:
        value = value[:_MAX_LOGGED_LENGTH] + '...'
    return value

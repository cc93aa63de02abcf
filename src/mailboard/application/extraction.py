"""Pull intake fields out of a free-text email body.

Bodies look like::

    Jane Doe
    Phone Number: 555-1234
    Email Address: jane@x.com
    Service: Checkup
    Special Note: prefers mornings

The first non-blank line is the name; everything else is ``Label: value``.
"""

from __future__ import annotations

import re
from typing import Optional

from mailboard.domain.entities.inbound_email import ExtractedFields
from mailboard.domain.entities.tenant import DESTINATION_FIELDS


def _label_pattern(label: str) -> re.Pattern[str]:
    # [ \t]* rather than \s* so an empty value never swallows the next line
    return re.compile(
        rf"^[ \t]*{re.escape(label)}[ \t]*:[ \t]*(.*)$",
        re.IGNORECASE | re.MULTILINE,
    )


_PATTERNS: dict[str, re.Pattern[str]] = {
    f.key: _label_pattern(f.title) for f in DESTINATION_FIELDS
}


def extract_name(text: str) -> Optional[str]:
    for line in text.splitlines():
        line = line.strip()
        if line:
            return line
    return None


def extract_value(key: str, text: str) -> Optional[str]:
    match = _PATTERNS[key].search(text)
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


def extract(raw_text: Optional[str]) -> ExtractedFields:
    """Extract name and labelled fields. Never raises on odd input."""
    text = raw_text or ""
    return ExtractedFields(
        name=extract_name(text),
        **{key: extract_value(key, text) for key in _PATTERNS},
    )

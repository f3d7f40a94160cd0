import re

_TAG_RE = re.compile(r'<[^>]+>')
_CONTROL_RE = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')
_WHITESPACE_RE = re.compile(r'\s+')


def sanitize_text(text: str) -> str:
    """Strip HTML tags and control characters from client-supplied text."""
    text = _TAG_RE.sub('', text)
    text = _CONTROL_RE.sub('', text)
    return text.strip()


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(' ', text)

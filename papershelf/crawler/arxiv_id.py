import re
from urllib.parse import unquote

# http(s)://arxiv.org/abs/<id>, https://export.arxiv.org/pdf/<id>.pdf, ...
_RESOURCE_URL = re.compile(
    r"^(?:https?://[^/]+)?/?(?:abs|pdf)/(?P<id>.+?)(?:\.pdf)?/?$",
    re.IGNORECASE,
)
_ARXIV_PREFIX = re.compile(r"^arxiv:", re.IGNORECASE)


def normalize_arxiv_id(raw: str) -> str:
    """
    Canonical arXiv id from a bare id, an abs/pdf URL or a URL-encoded form.

        >>> normalize_arxiv_id("http://arxiv.org/abs/2106.09685v2")
        '2106.09685v2'
        >>> normalize_arxiv_id("https%3A%2F%2Farxiv.org%2Fabs%2F2106.09685v2")
        '2106.09685v2'

    Version suffixes are kept. Anything unrecognised comes back unchanged.
    """
    if not raw:
        return raw

    value = raw.strip()

    # decode repeatedly, ids are sometimes double-encoded in route params
    for _ in range(3):
        decoded = unquote(value)
        if decoded == value:
            break
        value = decoded

    match = _RESOURCE_URL.match(value)
    if match:
        value = match.group("id")

    return _ARXIV_PREFIX.sub("", value)

import re
from datetime import datetime, timezone

# Characters a wiki page title may not contain.
ILLEGAL_TITLE_CHARS = re.compile(r"[#<>\[\]|{}\x00-\x1f\x7f]")


def timestamp() -> float:
    return datetime.now(timezone.utc).timestamp()


def normalize_title(title: str) -> str:
    """Titles are stored with spaces; links and URLs use underscores."""
    return title.replace("_", " ").strip()


def has_illegal_title_chars(title: str) -> bool:
    return ILLEGAL_TITLE_CHARS.search(title) is not None


def truncate(text: str, length: int) -> str:
    text = " ".join(text.split())
    if len(text) <= length:
        return text
    return text[:length - 3].rstrip() + "..."


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

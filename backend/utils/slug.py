import re
import unicodedata

_WS_RE = re.compile(r"\s+")


def slugify(text: str) -> str:
    """
    Convert a title or name into a URL-safe slug.

    - unicode -> ascii (best-effort)
    - lowercased
    - non-alnum runs collapsed to '-'
    """
    t = _WS_RE.sub(" ", str(text or "")).strip()
    if not t:
        return ""
    t = unicodedata.normalize("NFKD", t)
    t = t.encode("ascii", "ignore").decode("ascii")
    t = t.lower()
    t = re.sub(r"[^a-z0-9]+", "-", t)
    t = re.sub(r"-{2,}", "-", t).strip("-")
    return t


def normalize_category_name(name: str) -> str:
    """'  tEcH news ' -> 'Tech news'"""
    t = _WS_RE.sub(" ", str(name or "")).strip()
    if not t:
        return ""
    return t[0].upper() + t[1:].lower()

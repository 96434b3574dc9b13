"""Fixed HTML tables: void elements, raw-text elements and doctypes."""

from __future__ import annotations

SELF_CLOSING: frozenset[str] = frozenset(
    {"meta", "img", "link", "input", "source", "area", "base", "col", "br", "hr"}
)

RAW_TEXT: frozenset[str] = frozenset({"script", "style"})

DOCTYPES: dict[str, str] = {
    "5": "<!DOCTYPE html>",
    "default": "<!DOCTYPE html>",
    "html": "<!DOCTYPE html>",
    "xml": '<?xml version="1.0" encoding="utf-8" ?>',
    "transitional": (
        '<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.0 Transitional//EN" '
        '"http://www.w3.org/TR/xhtml1/DTD/xhtml1-transitional.dtd">'
    ),
    "strict": (
        '<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.0 Strict//EN" '
        '"http://www.w3.org/TR/xhtml1/DTD/xhtml1-strict.dtd">'
    ),
    "frameset": (
        '<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.0 Frameset//EN" '
        '"http://www.w3.org/TR/xhtml1/DTD/xhtml1-frameset.dtd">'
    ),
    "1.1": (
        '<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.1//EN" '
        '"http://www.w3.org/TR/xhtml11/DTD/xhtml11.dtd">'
    ),
    "basic": (
        '<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML Basic 1.1//EN" '
        '"http://www.w3.org/TR/xhtml-basic/xhtml-basic11.dtd">'
    ),
    "mobile": (
        '<!DOCTYPE html PUBLIC "-//WAPFORUM//DTD XHTML Mobile 1.2//EN" '
        '"http://www.openmobilealliance.org/tech/DTD/xhtml-mobile12.dtd">'
    ),
}


def doctype_markup(value: str) -> str:
    """Return the doctype declaration for a ``!!!`` value (empty means html)."""
    key = value.strip() or "html"
    return DOCTYPES.get(key.lower(), f"<!DOCTYPE {key}>")


def is_self_closing(name: str) -> bool:
    return name in SELF_CLOSING


def is_raw_text(name: str) -> bool:
    return name in RAW_TEXT

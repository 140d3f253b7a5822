from __future__ import annotations

import re

# Markup stripped from free-text notes before they are stored.
_BLOCK_TAGS = ("script", "iframe", "object", "embed", "form", "textarea", "select", "button", "style")
_BLOCKS = [re.compile(rf"<{t}\b[^<]*(?:(?!</{t}>)<[^<]*)*</{t}>", re.IGNORECASE) for t in _BLOCK_TAGS]
_VOID_TAGS = [re.compile(rf"<{t}\b[^>]*>", re.IGNORECASE) for t in ("input", "link", "meta")]
_INLINE = [
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"data:", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"expression\s*\(", re.IGNORECASE),
    re.compile(r"eval\s*\(", re.IGNORECASE),
]
_ANY_TAG = re.compile(r"<[^>]*>")


def sanitize_input(value: object) -> str:
    if not isinstance(value, str):
        return ""
    s = value
    for pat in (*_BLOCKS, *_VOID_TAGS, *_INLINE):
        s = pat.sub("", s)
    return _ANY_TAG.sub("", s).strip()

# naming.py
import os
from typing import Iterable

from .exceptions import ValidationError

MAX_NAME_LENGTH = 255


def clean_name(name: str | None, kind: str = "Item") -> str:
    """Strips a user-supplied name and rejects empty, overlong or path-like names."""
    if name is not None and not isinstance(name, str):
        raise ValidationError(f"{kind} name must be text")
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(f"{kind} name is required")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(f"{kind} name cannot exceed {MAX_NAME_LENGTH} characters")
    if "/" in cleaned or "\\" in cleaned:
        raise ValidationError(f"{kind} name cannot contain slashes")
    return cleaned


def name_key(name: str) -> str:
    return name.casefold()


def unique_name(name: str, taken: Iterable[str], keep_extension: bool = False) -> str:
    """
    Returns `name` if no sibling uses it, otherwise the first free
    "name (n)" variant. With keep_extension the counter goes before the
    extension: "logo.png" -> "logo (1).png".
    """
    used = {name_key(t) for t in taken}
    if name_key(name) not in used:
        return name

    base, ext = os.path.splitext(name) if keep_extension else (name, "")
    counter = 1
    while True:
        candidate = f"{base} ({counter}){ext}"
        if name_key(candidate) not in used:
            return candidate
        counter += 1

"""
Helper functions shared by the CMS modules.

Slug and machine name generation, wildcard path matching and parsing of
bracketed form field names.
"""

import re
import unicodedata
from typing import Any, Dict, Iterable, Optional, Tuple

_NON_SLUG = re.compile(r"[^a-z0-9]+")
_NON_MACHINE = re.compile(r"[^a-z0-9_]+")


def slugify(text: str, fallback: str = "item") -> str:
    """
    Convert text to a URL slug.

    Args:
        text: Text to convert
        fallback: Slug returned when nothing usable is left

    Returns:
        Lowercase slug made of letters, digits and hyphens

    Examples:
        >>> slugify("Hello, World!")
        'hello-world'
        >>> slugify("!!!", fallback="term")
        'term'
    """
    normalized = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode()
    slug = _NON_SLUG.sub("-", normalized.lower()).strip("-")
    return slug or fallback


def machine_name(text: str, prefix: Optional[str] = None) -> str:
    """
    Convert text to a machine name (lowercase letters, digits, underscores).

    Args:
        text: Text to convert
        prefix: Prefix forced onto the result (``field_`` for fields)

    Returns:
        Machine name
    """
    name = _NON_MACHINE.sub("_", slugify(text, fallback="").replace("-", "_")).strip("_")
    if prefix:
        if not name.startswith(prefix):
            name = prefix + name
        if name == prefix:
            name = prefix.rstrip("_")
    return name


def path_matches(path: str, pattern: str) -> bool:
    """
    Check a request path against a visibility pattern.

    Patterns match exactly or with ``*`` wildcards spanning any characters.

    Examples:
        >>> path_matches("/blog/post-1", "/blog/*")
        True
        >>> path_matches("about", "/about")
        True
    """
    path = "/" + path.lstrip("/")
    pattern = "/" + pattern.strip().lstrip("/")
    if pattern == path:
        return True
    if "*" in pattern:
        regex = "^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$"
        return re.match(regex, path) is not None
    return False


_KEY_HEAD = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
_KEY_PART = re.compile(r"\[([^\[\]]*)\]")


def parse_form_data(items: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    """
    Build nested values from bracketed form field names.

    ``a[b][c]`` nests dicts and a trailing ``[]`` collects a list. Numeric
    keys stay strings; the widget registry accepts ``{"0": ...}`` dicts
    wherever it accepts lists.

    Args:
        items: ``(name, value)`` pairs, e.g. ``FormData.multi_items()``

    Examples:
        >>> parse_form_data([("tags[]", "a"), ("tags[]", "b"), ("link[url]", "/x")])
        {'tags': ['a', 'b'], 'link': {'url': '/x'}}
    """
    data: Dict[str, Any] = {}
    for name, value in items:
        match = _KEY_HEAD.match(name)
        if match is None:
            data[name] = value
            continue
        parts = [match.group(1)] + _KEY_PART.findall(match.group(2))

        target: Any = data
        for part, following in zip(parts, parts[1:]):
            container_type = list if following == "" else dict
            if isinstance(target, list):
                child: Any = container_type()
                target.append(child)
            else:
                child = target.get(part)
                if not isinstance(child, container_type):
                    child = container_type()
                    target[part] = child
            target = child

        if isinstance(target, list):
            target.append(value)
        else:
            target[parts[-1]] = value
    return data

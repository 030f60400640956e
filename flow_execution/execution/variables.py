"""
Variable Resolver.

Expands {{a.b.c}} placeholders against the context data returned by the
Step Processor. Resolution never fails: a placeholder whose path cannot be
walked is left in the text exactly as written, so resolving an already
resolved string again changes nothing.
"""

import json
import re
from typing import Any, Mapping, Optional

PLACEHOLDER = re.compile(r"\{\{([^}]+)\}\}")


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


def lookup_path(ctx: Any, path: str) -> Any:
    """
    Walks a dotted path through nested mappings.

    Returns MISSING when ctx is empty or any segment is absent.
    """
    if not ctx:
        return MISSING
    value = ctx
    for part in path.strip().split("."):
        if isinstance(value, Mapping) and part in value:
            value = value[part]
        else:
            return MISSING
    return value


def resolve(template: Any, ctx: Optional[Mapping[str, Any]]) -> Any:
    """
    Replaces every {{path}} in template with the value found in ctx.

    Non-string templates are returned unchanged. Missing and null values
    leave the placeholder untouched.
    """
    if not template or not isinstance(template, str) or not ctx:
        return template

    def _substitute(match: re.Match) -> str:
        value = lookup_path(ctx, match.group(1))
        if value is MISSING or value is None:
            return match.group(0)
        return stringify(value)

    return PLACEHOLDER.sub(_substitute, template)


def has_unresolved(text: Any) -> bool:
    return isinstance(text, str) and PLACEHOLDER.search(text) is not None


def stringify(value: Any) -> str:
    # Context data is JSON, so booleans render the way the processor writes them.
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)

"""
sqlkv.sql.template

Two-phase `$token` substitution for SQL statement templates.

Responsibilities:
- Replace `$name` tokens with values from a binding map.
- Keep unmatched tokens (and escapes) verbatim for a later pass, or fail on them.
- Escape substituted values in a kept pass so they survive the final one.
"""

from __future__ import annotations

from collections.abc import Mapping

from sqlkv.errors import TemplateError

MARKER = "$"
ESCAPE = "\\"


def _is_name_start(c: str) -> bool:
    return c == "_" or (c.isascii() and c.isalpha())


def _is_name_part(c: str) -> bool:
    return c == "_" or (c.isascii() and c.isalnum())


def render(template: str, bindings: Mapping[str, str], *, keep_unmatched: bool = False) -> str:
    """
    Render `template` against `bindings`.

    `keep_unmatched=True` leaves unknown tokens and backslash escapes untouched so the
    result can be rendered again; `False` is the final pass: unknown tokens raise
    `TemplateError` and escapes are resolved (`\\$` becomes `$`).
    """

    out: list[str] = []
    i = 0
    n = len(template)
    while i < n:
        c = template[i]
        if c == ESCAPE:
            if i + 1 >= n:
                raise TemplateError(f"Dangling escape character at end of template: {template}")
            out.append(template[i : i + 2] if keep_unmatched else template[i + 1])
            i += 2
            continue
        if c != MARKER:
            out.append(c)
            i += 1
            continue
        if i + 1 >= n:
            raise TemplateError(f"Dangling token marker at end of template: {template}")
        if not _is_name_start(template[i + 1]):
            raise TemplateError(f"Illegal token name start {template[i + 1]!r} in: {template}")
        j = i + 2
        while j < n and _is_name_part(template[j]):
            j += 1
        name = template[i + 1 : j]
        if name in bindings:
            # Values are literal; a kept render escapes them for the next pass.
            out.append(escape(bindings[name]) if keep_unmatched else bindings[name])
        elif keep_unmatched:
            out.append(template[i:j])
        else:
            raise TemplateError(f"No binding for token '{name}' in: {template}")
        i = j
    return "".join(out)


def escape(text: str) -> str:
    """Escape `text` so a later `render` reproduces it literally."""
    return text.replace(ESCAPE, ESCAPE + ESCAPE).replace(MARKER, ESCAPE + MARKER)


def placeholders(prefix: str, count: int) -> list[str]:
    # Named bind markers for batch statements: :k0, :k1, ...
    return [f":{prefix}{i}" for i in range(count)]


# --- Module Notes -----------------------------------------------------------
# Structural tokens (table/column names) resolve at engine construction; value-level
# tokens such as `$timestamp_placeholder` resolve in a second pass.

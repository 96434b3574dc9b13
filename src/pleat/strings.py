"""String helpers shared by the scanner and the code generator."""

from __future__ import annotations


def dedent_lines(lines: list[str]) -> list[str]:
    """Strip the whitespace prefix common to every non-blank line.

    Blank lines do not take part in the prefix computation and come back
    empty.
    """
    prefix: str | None = None
    for line in lines:
        if not line.strip():
            continue
        lead = line[: len(line) - len(line.lstrip())]
        if prefix is None:
            prefix = lead
        else:
            prefix = _common_prefix(prefix, lead)
        if not prefix:
            break

    if not prefix:
        return [line if line.strip() else "" for line in lines]
    return [line[len(prefix) :] if line.strip() else "" for line in lines]


def _common_prefix(a: str, b: str) -> str:
    n = 0
    for x, y in zip(a, b):
        if x != y:
            break
        n += 1
    return a[:n]


def strip_sigils(expr: str) -> str:
    """Drop ``$`` sigils in front of identifiers, leaving string literals alone.

    ``$a + $b`` becomes ``a + b``; ``"$a"`` is untouched.
    """
    if "$" not in expr:
        return expr

    out: list[str] = []
    i = 0
    n = len(expr)
    quote = ""
    while i < n:
        ch = expr[i]
        if quote:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(expr[i + 1])
                i += 2
                continue
            if expr.startswith(quote, i):
                out.append(expr[i + 1 : i + len(quote)])
                i += len(quote)
                quote = ""
                continue
            i += 1
            continue
        if ch in "\"'":
            quote = ch * 3 if expr.startswith(ch * 3, i) else ch
            out.append(quote)
            i += len(quote)
            continue
        if ch == "$" and i + 1 < n and (expr[i + 1].isalpha() or expr[i + 1] == "_"):
            i += 1
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def identifier(name: str) -> str:
    """Turn a template name such as ``nav-item`` into a Python identifier."""
    return name.replace("-", "__")

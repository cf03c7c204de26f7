"""
Host functions made available to stub scripts
"""
from typing import Any, Callable, Dict


def dedup(labels: str) -> str:
    """
    Canonicalize a comma-joined list of key=value tokens.

    Each token is split on its first '=' only; a token without '=' is a key
    with an empty value. When a key repeats, the later token wins. Surviving
    tokens are sorted by their full text and re-joined with commas.

        >>> dedup("a=1,b=2,a=3")
        'a=3,b=2'
    """
    if not isinstance(labels, str):
        raise TypeError(f"dedup: expected a string, got {type(labels).__name__}")

    seen: Dict[str, str] = {}
    for token in labels.split(","):
        key = token.partition("=")[0]
        seen[key] = token
    return ",".join(sorted(seen.values()))


# name -> callable, registered both as global function and filter
DEFAULT_EXTENSIONS: Dict[str, Callable[..., Any]] = {
    "dedup": dedup,
}

"""Funding-source bias heuristics.

A ``FunderPredicate`` decides whether one funder string signals a possible
conflict of interest. The default is a plain keyword match; anything with the
same ``str -> bool`` shape can replace it.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Tuple

FunderPredicate = Callable[[str], bool]

SUSPICIOUS_FUNDER_KEYWORDS = (
    "pharmaceutical",
    "pharma",
    "pfizer",
    "moderna",
    "merck",
    "bayer",
    "monsanto",
    "agriculture",
    "agri",
)


def keyword_funder_predicate(funder: str) -> bool:
    lowered = str(funder or "").lower()
    return any(keyword in lowered for keyword in SUSPICIOUS_FUNDER_KEYWORDS)


def detect_bias(
    funders: Iterable[str],
    predicate: FunderPredicate = keyword_funder_predicate,
) -> Tuple[List[str], List[str]]:
    """Return ``(suspicious_funders, bias_flags)`` for the given funding sources."""
    suspicious: List[str] = []
    flags: List[str] = []
    for funder in funders:
        name = str(funder or "").strip()
        if not name or name in suspicious:
            continue
        if predicate(name):
            suspicious.append(name)
            flags.append(f"Funded by {name}")
    return suspicious, flags

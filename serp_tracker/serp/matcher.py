"""
Result matcher: locates the target domain in an ordered result list.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ..models import MAX_COMPETITORS, ExtractedResult


@dataclass
class MatchResult:
    """
    Outcome of matching one SERP against the target domain.

    rank is 0 when the domain is absent; matched is then None and
    competitors holds the top results unfiltered.
    """
    rank: int
    matched: Optional[ExtractedResult] = None
    competitors: List[ExtractedResult] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.rank > 0


def domain_matches(result: ExtractedResult, target_domain: str) -> bool:
    """True if the result belongs to the target domain (or a subdomain of it)."""
    target = target_domain.lower()
    domain = result.domain.lower()
    return (
        domain == target
        or domain.endswith(f".{target}")
        or target in result.url.lower()
    )


def match(results: List[ExtractedResult], target_domain: str) -> MatchResult:
    """
    Find the target domain's rank among ordered results.

    Args:
        results: Extracted results in SERP order
        target_domain: Domain to locate

    Returns:
        MatchResult with rank, matched result and up to 10 competitors.
        Competitors never include a result of the target domain.
    """
    for result in results:
        if domain_matches(result, target_domain):
            competitors = [r for r in results if not domain_matches(r, target_domain)]
            return MatchResult(
                rank=result.position,
                matched=result,
                competitors=competitors[:MAX_COMPETITORS],
            )

    return MatchResult(rank=0, matched=None, competitors=list(results[:MAX_COMPETITORS]))

"""
Match scoring between a viewing profile and candidate partners.

Responsibilities:
- Count how many of a candidate's offerings satisfy the viewer's wants,
  and how many of the candidate's wants the viewer can satisfy.
- Normalize that count by the size of the viewer's own lists.
- Rank candidates by score, keeping retrieval order on ties.

Non-Responsibilities:
- No store access. Callers pass fully loaded snapshots.
- No candidate selection (which role to show is the caller's policy).

Invariant:
Given the same two profiles, the score is identical regardless of the
order of their item lists, and neither profile is modified.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from .labels import LabelMatcher, exact_match
from .models import Offering, Profile, Want

MAX_SCORE = 100


@dataclass(frozen=True)
class Match:
    candidate: Profile
    score: int


@dataclass
class MatchBreakdown:
    """Intermediate values of one viewer/candidate comparison."""

    offered_to_viewer: List[str] = field(default_factory=list)
    wanted_from_viewer: List[str] = field(default_factory=list)
    denominator: int = 1

    @property
    def hits(self) -> int:
        return len(self.offered_to_viewer) + len(self.wanted_from_viewer)


def _items(items) -> Sequence:
    return items or ()


def _satisfied(label: str, against: Iterable, matcher: LabelMatcher, label_is_want: bool) -> bool:
    # matcher is always called as (want_label, offering_label)
    for other in against:
        if label_is_want:
            if matcher(label, other.label):
                return True
        elif matcher(other.label, label):
            return True
    return False


def match_breakdown(viewer: Profile, candidate: Profile, matcher: LabelMatcher = exact_match) -> MatchBreakdown:
    """
    Compare a candidate's items against the viewer's.

    Each candidate offering counts once if any viewer want matches it;
    each candidate want counts once if any viewer offering matches it.

    Args:
        viewer: Profile doing the looking; its list sizes form the denominator
        candidate: Profile being evaluated
        matcher: Label equality strategy, called as matcher(want_label, offering_label)

    Returns:
        MatchBreakdown listing the matched candidate labels
    """
    viewer_wants: Sequence[Want] = _items(viewer.wants)
    viewer_offerings: Sequence[Offering] = _items(viewer.offerings)

    breakdown = MatchBreakdown(denominator=(len(viewer_wants) + len(viewer_offerings)) or 1)

    for offering in _items(candidate.offerings):
        if _satisfied(offering.label, viewer_wants, matcher, label_is_want=False):
            breakdown.offered_to_viewer.append(offering.label)

    for want in _items(candidate.wants):
        if _satisfied(want.label, viewer_offerings, matcher, label_is_want=True):
            breakdown.wanted_from_viewer.append(want.label)

    return breakdown


def _percent(hits: int, denominator: int) -> int:
    # round half up without floating point: floor(100 * hits / d + 1/2)
    return (200 * hits + denominator) // (2 * denominator)


def score_match(
    viewer: Profile,
    candidate: Profile,
    matcher: LabelMatcher = exact_match,
    clamp: bool = False,
) -> int:
    """
    Percentage of the viewer's wants and offerings met by a candidate.

    The score is not symmetric: the denominator comes from the viewer only.
    A viewer with no items scores every candidate 0. Without clamp the
    result can exceed 100 when a candidate has more matching items than the
    viewer has items in total.

    Args:
        viewer: Profile doing the looking
        candidate: Profile being evaluated
        matcher: Label equality strategy
        clamp: Cap the score at 100

    Returns:
        Integer score, 0 or more
    """
    breakdown = match_breakdown(viewer, candidate, matcher)
    score = _percent(breakdown.hits, breakdown.denominator)
    if clamp:
        return min(score, MAX_SCORE)
    return score


def rank_candidates(
    viewer: Profile,
    candidates: Iterable[Profile],
    matcher: LabelMatcher = exact_match,
    clamp: bool = False,
) -> List[Match]:
    """Score each candidate and order by descending score, stable on ties.

    A candidate with the viewer's own id is skipped.
    """
    scored = [
        Match(candidate=candidate, score=score_match(viewer, candidate, matcher, clamp))
        for candidate in candidates
        if candidate.id != viewer.id
    ]
    return sorted(scored, key=lambda m: m.score, reverse=True)

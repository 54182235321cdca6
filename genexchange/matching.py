"""
Find ranked partners for a user.

Loads the viewer and candidate snapshots from a profile store, scores them
with the match scorer, and applies the listing filters used by the
"learn" and "share" views.
"""

from typing import List, Optional

from .labels import LabelMatcher, exact_match
from .logger import get_logger
from .models import Profile
from .scorer import Match, match_breakdown, rank_candidates

logger = get_logger()

LEARN = "learn"  # candidates who can teach the viewer something
SHARE = "share"  # candidates who want something the viewer offers
MODES = (LEARN, SHARE)


def _in_mode(viewer: Profile, candidate: Profile, mode: str, matcher: LabelMatcher) -> bool:
    breakdown = match_breakdown(viewer, candidate, matcher)
    if mode == LEARN:
        return bool(breakdown.offered_to_viewer)
    return bool(breakdown.wanted_from_viewer)


def find_matches(
    store,
    user_id: str,
    mode: Optional[str] = None,
    min_score: Optional[int] = None,
    limit: Optional[int] = None,
    matcher: LabelMatcher = exact_match,
    clamp: bool = False,
) -> List[Match]:
    """
    Rank candidate partners for a user.

    Args:
        store: Object with load_profile(user_id) and list_candidates(viewer)
        user_id: Identity of the viewing user
        mode: Optional "learn" or "share" filter
        min_score: Drop matches scoring below this
        limit: Keep at most this many matches
        matcher: Label equality strategy passed to the scorer
        clamp: Cap scores at 100

    Returns:
        Matches ordered by descending score, retrieval order on ties

    Raises:
        ValueError: On an unknown mode
        StoreError: If the store cannot load the viewer or candidates
    """
    if mode is not None and mode not in MODES:
        raise ValueError(f"Unknown mode: {mode!r} (use {' or '.join(MODES)})")

    viewer = store.load_profile(user_id)
    candidates = store.list_candidates(viewer)
    if mode is not None:
        candidates = [c for c in candidates if _in_mode(viewer, c, mode, matcher)]

    matches = rank_candidates(viewer, candidates, matcher=matcher, clamp=clamp)
    logger.record_match_query(len(candidates))

    if min_score is not None:
        matches = [m for m in matches if m.score >= min_score]
    if limit is not None:
        matches = matches[:limit]

    logger.info(
        "Match query complete",
        user_id=user_id,
        mode=mode,
        candidates=len(candidates),
        returned=len(matches),
    )
    return matches

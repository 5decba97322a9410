"""Discovery search — runs a filter over a profile stream and records history.

The profile source is any iterable (a paged query, a cached list, ...);
filtering itself is delegated to the pure filter engine.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Iterable

from cofoundry.core.filter_engine import Coordinates, active_filter_count, filter_candidates
from cofoundry.core.search_filter import SearchFilter, SearchHistoryEntry

if TYPE_CHECKING:
    from cofoundry.data.db import FilterPresetDB
    from cofoundry.data.models import CandidateProfile

logger = logging.getLogger(__name__)


def run_search(
    search_filter: SearchFilter,
    candidates: Iterable[CandidateProfile],
    requester_location: Coordinates | None = None,
    now: datetime | None = None,
    history: FilterPresetDB | None = None,
    user_id: int | None = None,
    limit: int | None = None,
) -> list[CandidateProfile]:
    """Return admitted candidates (at most `limit`) and log the search to history."""
    results: list[CandidateProfile] = []
    for candidate in filter_candidates(search_filter, candidates, requester_location, now):
        if limit is not None and len(results) >= limit:
            break
        results.append(candidate)

    logger.info(
        "Search with %d active filters admitted %d candidates",
        active_filter_count(search_filter), len(results),
    )

    if history is not None:
        try:
            history.add_history(
                SearchHistoryEntry(filter=search_filter, results_count=len(results)),
                user_id=user_id,
            )
        except Exception as exc:
            logger.error("Failed to record search history: %s", exc)
    return results


def apply_preset(presets: FilterPresetDB, preset_id: str) -> SearchFilter | None:
    """Load a saved preset's filter and mark the preset as used."""
    preset = presets.mark_preset_used(preset_id)
    if preset is None:
        logger.info("Filter preset %s not found", preset_id)
        return None
    return preset.filter

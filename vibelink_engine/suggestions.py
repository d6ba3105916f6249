"""
Friend Suggestion Merging
=========================

Builds the "people you may know" list by pulling candidates from:
1. Phone contacts already on the app
2. Accounts followed on the linked social network
3. Friends-of-friends supplied by the caller
4. People who frequent the same venues (optional provider)
5. An algorithmic recommender (optional provider)

Each source has a base priority (see config.PRIORITY_WEIGHTS); mutual
friends get +2 per shared friend. The merged list is deduplicated
(highest priority wins), stripped of excluded users, sorted and cached
per merger instance.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import asdict
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .config import (
    DEFAULT_SUGGESTION_CONFIG,
    MUTUAL_FRIEND_BONUS,
    PRIORITY_WEIGHTS,
    SuggestionConfig,
)
from .models import RawCandidate, SuggestedPerson, SuggestionSource
from .utils import Clock, TTLCache, digest, now_ms

logger = logging.getLogger(__name__)

SuggestionProvider = Callable[[], List[RawCandidate]]

# Fixed merge order so results do not depend on which provider finished first
SOURCE_ORDER = (
    SuggestionSource.CONTACT,
    SuggestionSource.SOCIAL,
    SuggestionSource.MUTUAL,
    SuggestionSource.VENUE,
    SuggestionSource.ALGORITHMIC,
)


def candidate_priority(source: SuggestionSource, mutual_count: int = 0) -> float:
    """Base weight for the source, plus the mutual-friend bonus for MUTUAL."""
    priority = PRIORITY_WEIGHTS[source.value]
    if source == SuggestionSource.MUTUAL:
        priority += MUTUAL_FRIEND_BONUS * mutual_count
    return float(priority)


def to_suggestion(candidate: RawCandidate, source: SuggestionSource) -> SuggestedPerson:
    return SuggestedPerson(
        id=candidate.user_id,
        source=source,
        priority=candidate_priority(source, candidate.mutual_count),
        mutual_count=candidate.mutual_count,
        display_name=candidate.display_name,
        detail=candidate.detail,
    )


def deduplicate(suggestions: Iterable[SuggestedPerson]) -> List[SuggestedPerson]:
    """Keep one entry per id, the one with the highest priority."""
    seen: Dict[str, SuggestedPerson] = {}
    for suggestion in suggestions:
        existing = seen.get(suggestion.id)
        if existing is None or suggestion.priority > existing.priority:
            seen[suggestion.id] = suggestion
    return list(seen.values())


class SuggestionMerger:
    """
    Merges friend suggestions from independent providers.

    Strategy:
        1. Serve from the instance cache while it is fresh
        2. Call the enabled providers in parallel under one deadline
        3. Map, deduplicate, exclude, sort, truncate
        4. Cache the result
    """

    def __init__(
        self,
        contacts_provider: Optional[SuggestionProvider] = None,
        social_provider: Optional[SuggestionProvider] = None,
        venue_provider: Optional[SuggestionProvider] = None,
        algorithmic_provider: Optional[SuggestionProvider] = None,
        config: SuggestionConfig = DEFAULT_SUGGESTION_CONFIG,
        clock: Clock = now_ms,
    ):
        """
        Initialize the merger.

        Args:
            contacts_provider: Returns contact matches
            social_provider: Returns accounts followed on the social network
            venue_provider: Returns venue co-visitors
            algorithmic_provider: Returns model-ranked people the viewer may know
            config: Default merge configuration
            clock: Source of the current time in epoch ms
        """
        self.providers: Dict[SuggestionSource, SuggestionProvider] = {}
        if contacts_provider is not None:
            self.providers[SuggestionSource.CONTACT] = contacts_provider
        if social_provider is not None:
            self.providers[SuggestionSource.SOCIAL] = social_provider
        if venue_provider is not None:
            self.providers[SuggestionSource.VENUE] = venue_provider
        if algorithmic_provider is not None:
            self.providers[SuggestionSource.ALGORITHMIC] = algorithmic_provider

        self.config = config
        self.cache = TTLCache(config.cache_ttl_ms, clock=clock)

    def get_suggestions(
        self,
        excluded_ids: Iterable[str] = (),
        mutual_candidates: Sequence[RawCandidate] = (),
        config: Optional[SuggestionConfig] = None,
    ) -> List[SuggestedPerson]:
        """
        Produce prioritized friend suggestions.

        Args:
            excluded_ids: Users never to suggest (already followed, blocked)
            mutual_candidates: Friends-of-friends with their mutual counts
            config: Overrides the merger's default configuration

        Returns:
            Suggestions, highest priority first
        """
        config = config or self.config
        excluded = set(excluded_ids)
        cache_key = self._cache_key(excluded, mutual_candidates, config)

        if config.use_cache:
            cached = self.cache.get(cache_key, ttl_ms=config.cache_ttl_ms)
            if cached is not None:
                logger.debug("Serving friend suggestions from cache")
                return list(cached)

        fetched = self._fetch_all(config)
        if config.include_mutual:
            fetched[SuggestionSource.MUTUAL] = list(mutual_candidates)

        result = tuple(merge_sources(fetched, excluded, config.max_suggestions))

        if config.use_cache:
            self.cache.set(cache_key, result, ttl_ms=config.cache_ttl_ms)

        logger.debug(
            f"Merged {sum(len(c) for c in fetched.values())} candidates "
            f"into {len(result)} suggestions"
        )
        return list(result)

    def invalidate_cache(self) -> None:
        """Drop cached suggestions so the next call merges afresh."""
        dropped = self.cache.clear()
        logger.debug(f"Suggestion cache invalidated ({dropped} entries)")

    def _enabled_providers(self, config: SuggestionConfig) -> Dict[SuggestionSource, SuggestionProvider]:
        enabled = {
            SuggestionSource.CONTACT: config.include_contacts,
            SuggestionSource.SOCIAL: config.include_social,
            SuggestionSource.VENUE: config.include_venue,
            SuggestionSource.ALGORITHMIC: config.include_algorithmic,
        }
        return {
            source: provider
            for source, provider in self.providers.items()
            if enabled.get(source, False)
        }

    def _fetch_all(self, config: SuggestionConfig) -> Dict[SuggestionSource, List[RawCandidate]]:
        """
        Call every enabled provider in parallel.

        A provider that raises or misses the deadline contributes nothing;
        the others are unaffected.
        """
        jobs = self._enabled_providers(config)
        results: Dict[SuggestionSource, List[RawCandidate]] = {}
        if not jobs:
            return results

        executor = ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix="vibelink-suggest")
        try:
            futures = {executor.submit(provider): source for source, provider in jobs.items()}
            done, not_done = wait(futures, timeout=config.timeout_s)

            for future in done:
                source = futures[future]
                try:
                    results[source] = list(future.result() or [])
                except Exception as e:
                    logger.warning(f"Suggestion provider {source.value} failed: {e}")
                    results[source] = []

            for future in not_done:
                source = futures[future]
                logger.warning(
                    f"Suggestion provider {source.value} timed out after {config.timeout_s}s"
                )
                results[source] = []
        finally:
            # Do not block on stragglers past the deadline
            executor.shutdown(wait=False, cancel_futures=True)

        return results

    def _cache_key(
        self,
        excluded: set,
        mutual_candidates: Sequence[RawCandidate],
        config: SuggestionConfig,
    ) -> str:
        return digest({
            'excluded': sorted(excluded),
            'mutual': [
                [c.user_id, c.mutual_count, c.display_name, c.detail]
                for c in mutual_candidates
            ],
            'config': asdict(config),
        })


def merge_sources(
    sources: Dict[SuggestionSource, Sequence[RawCandidate]],
    excluded_ids: Iterable[str] = (),
    max_suggestions: int = DEFAULT_SUGGESTION_CONFIG.max_suggestions,
) -> List[SuggestedPerson]:
    """
    Merge already-fetched candidates without providers or caching.

    Args:
        sources: Raw candidates per source
        excluded_ids: Users never to suggest
        max_suggestions: Maximum results

    Returns:
        Suggestions, highest priority first
    """
    excluded = set(excluded_ids)
    merged: List[SuggestedPerson] = []
    for source in SOURCE_ORDER:
        for candidate in sources.get(source, ()):
            # People not on the app yet cannot be followed
            if candidate.user_id:
                merged.append(to_suggestion(candidate, source))

    unique = [s for s in deduplicate(merged) if s.id not in excluded]
    unique.sort(key=lambda s: s.priority, reverse=True)
    return unique[:max_suggestions]

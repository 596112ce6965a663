"""
Provider interfaces the engine is injected with, plus in-memory snapshots.

The engine never talks to a database. Callers either implement these protocols
directly or load a snapshot (see `SkincareRepository`) and wrap it with the
in-memory classes below for the duration of one request.
"""

from typing import Iterable, Optional, Protocol

from skinplan.schemas import Product, RecommendationResult, Rule, SkinProfile


class ProfileProvider(Protocol):
    def get_current_profile(self, user_id: str) -> Optional[SkinProfile]: ...


class RuleProvider(Protocol):
    def list_active_rules(self) -> list[Rule]: ...


class CatalogProvider(Protocol):
    def find_products(self) -> list[Product]: ...


class ResultStore(Protocol):
    def get_existing_result(self, user_id: str, profile_id: str) -> Optional[RecommendationResult]: ...

    def save_result(self, result: RecommendationResult) -> None: ...


class InMemoryProfiles:
    """Keeps every version; the current profile is the highest version."""

    def __init__(self, profiles: Iterable[SkinProfile] = ()):
        self._profiles: dict[tuple[str, int], SkinProfile] = {}
        for profile in profiles:
            self.add(profile)

    def add(self, profile: SkinProfile) -> None:
        self._profiles[(profile.user_id, profile.version)] = profile

    def get_current_profile(self, user_id: str) -> Optional[SkinProfile]:
        versions = [p for (uid, _), p in self._profiles.items() if uid == user_id]
        if not versions:
            return None
        return max(versions, key=lambda p: p.version)


class InMemoryRules:
    def __init__(self, rules: Iterable[Rule] = ()):
        self._rules = list(rules)

    def list_active_rules(self) -> list[Rule]:
        return [r for r in self._rules if r.is_active]


class InMemoryCatalog:
    def __init__(self, products: Iterable[Product] = ()):
        self._products = list(products)

    def find_products(self) -> list[Product]:
        return list(self._products)


class InMemoryResultStore:
    """Result store keyed by (user_id, profile_id). Records every write."""

    def __init__(self, results: Iterable[RecommendationResult] = ()):
        self._results: dict[tuple[str, str], RecommendationResult] = {}
        self.writes: list[RecommendationResult] = []
        for result in results:
            self._results[(result.user_id, result.profile_id)] = result

    def get_existing_result(self, user_id: str, profile_id: str) -> Optional[RecommendationResult]:
        return self._results.get((user_id, profile_id))

    def save_result(self, result: RecommendationResult) -> None:
        self._results[(result.user_id, result.profile_id)] = result
        self.writes.append(result)

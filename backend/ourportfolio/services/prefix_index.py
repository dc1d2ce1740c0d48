"""
OurPortfolio Backend — In-Memory Tech-Stack Prefix Index
=========================================================

What:  Maps every tech keyword to the ids of the portfolios that list it and
       answers "which keywords start with <prefix>?" for autocomplete.
Why:   Autocomplete fires on every keystroke; a round-trip to PostgreSQL per
       keystroke is wasteful when the whole keyword set fits in memory.
How:   A dict (keyword → ordered id list) plus a sorted list of the same
       keys. A prefix query is a bisect to the first key >= prefix followed
       by a scan that stops at the first key not starting with prefix.
Who:   Owned by TechStackIndexSynchronizer (services/index_sync.py); never
       instantiated per request.

Invariants:
    - id is listed under keyword K iff that portfolio's tech stack contains K
    - no keyword is kept with an empty id list
    - `_sorted_keys` always holds exactly the keys of `_entries`, sorted
    - `_keywords_by_id` is the exact inverse of `_entries`; `assign` and
      `discard` remove what the index holds for an id, never a caller snapshot

Concurrency:
    A single re-entrant lock serializes every operation. `rebuild` holds it
    for the whole clear-and-fill, so readers never see a half-built index.
    Each insert/remove holds it across its read-then-write, which keeps all
    operations linearizable. Nothing inside the lock awaits or does I/O.
"""

import logging
import threading
from bisect import bisect_left, insort
from typing import Dict, Iterable, List, NamedTuple, Optional

from ourportfolio.services.keywords import extract_keywords

logger = logging.getLogger(__name__)


class TechStackRecord(NamedTuple):
    """One row of the backing-store read used by `rebuild`."""

    portfolio_id: int
    tech_stack: Optional[str]


class PrefixIndex:
    """
    Thread-safe keyword → portfolio-id index with prefix queries.

    Args:
        lowercase: Fold keywords and query prefixes to lower case. Must be
                   fixed for the lifetime of the index so that extraction
                   stays identical between insert and remove.
    """

    def __init__(self, lowercase: bool = False):
        self.lowercase = lowercase
        self._entries: Dict[str, List[int]] = {}
        self._sorted_keys: List[str] = []
        self._keywords_by_id: Dict[int, List[str]] = {}
        self._lock = threading.RLock()

    # ── Extraction ────────────────────────────────────────────────────────

    def keywords_of(self, tech_stack: Optional[str]) -> List[str]:
        """Extract keywords using this index's normalization."""
        return extract_keywords(tech_stack, lowercase=self.lowercase)

    # ── Bulk ──────────────────────────────────────────────────────────────

    def rebuild(self, records: Iterable[TechStackRecord]) -> None:
        """
        Replace the whole index with the keywords of `records`.

        Records whose tech stack is None contribute nothing. Calling this
        twice with the same records yields the same index.
        """
        with self._lock:
            self._entries = {}
            self._sorted_keys = []
            self._keywords_by_id = {}
            for record in records:
                for keyword in self.keywords_of(record.tech_stack):
                    self._insert_locked(keyword, record.portfolio_id)
            logger.info(
                "Prefix index rebuilt: %d keywords", len(self._sorted_keys)
            )

    def clear(self) -> None:
        with self._lock:
            self._entries = {}
            self._sorted_keys = []
            self._keywords_by_id = {}

    # ── Single-keyword mutations ──────────────────────────────────────────

    def insert(self, keyword: str, portfolio_id: int) -> None:
        """
        Record that `portfolio_id` lists `keyword`.

        Creates the entry on first use. Inserting an id that is already
        present leaves the entry unchanged.
        """
        with self._lock:
            self._insert_locked(keyword, portfolio_id)

    def remove(self, keyword: str, portfolio_id: int) -> None:
        """
        Record that `portfolio_id` no longer lists `keyword`.

        Unknown keyword or unknown id: no-op. The entry is dropped once its
        last id is removed.
        """
        with self._lock:
            self._remove_locked(keyword, portfolio_id)

    # ── Whole-portfolio mutations ─────────────────────────────────────────

    def assign(self, portfolio_id: int, keywords: Iterable[str]) -> None:
        """
        Make `keywords` the complete keyword set of `portfolio_id`.

        Whatever the index currently holds for the id is removed first, then
        every keyword is inserted, under one lock acquisition.
        """
        with self._lock:
            self._discard_locked(portfolio_id)
            for keyword in keywords:
                self._insert_locked(keyword, portfolio_id)

    def discard(self, portfolio_id: int) -> None:
        """Remove `portfolio_id` from every keyword it is listed under."""
        with self._lock:
            self._discard_locked(portfolio_id)

    def keywords_for(self, portfolio_id: int) -> List[str]:
        """Keywords currently indexed for `portfolio_id` (a copy)."""
        with self._lock:
            return list(self._keywords_by_id.get(portfolio_id, ()))

    # ── Queries ───────────────────────────────────────────────────────────

    def query_prefix(self, prefix: str) -> List[str]:
        """
        Keywords starting with `prefix`, in lexicographic order.

        "" returns every keyword; no match returns [].
        """
        prefix = self._normalize(prefix)
        with self._lock:
            keys = self._sorted_keys
            matches: List[str] = []
            position = bisect_left(keys, prefix)
            while position < len(keys) and keys[position].startswith(prefix):
                matches.append(keys[position])
                position += 1
            return matches

    def portfolio_ids(self, keyword: str) -> List[int]:
        """Ids listed under exactly `keyword` (a copy; [] if unknown)."""
        keyword = self._normalize(keyword)
        with self._lock:
            return list(self._entries.get(keyword, ()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._sorted_keys)

    def __contains__(self, keyword: object) -> bool:
        if isinstance(keyword, str):
            keyword = self._normalize(keyword)
        with self._lock:
            return keyword in self._entries

    # ── Internals (caller holds the lock) ─────────────────────────────────

    def _normalize(self, keyword: str) -> str:
        return keyword.lower() if self.lowercase else keyword

    def _insert_locked(self, keyword: str, portfolio_id: int) -> None:
        keyword = self._normalize(keyword)
        ids = self._entries.get(keyword)
        if ids is None:
            self._entries[keyword] = [portfolio_id]
            insort(self._sorted_keys, keyword)
        elif portfolio_id in ids:
            return
        else:
            ids.append(portfolio_id)
        self._keywords_by_id.setdefault(portfolio_id, []).append(keyword)

    def _remove_locked(self, keyword: str, portfolio_id: int) -> None:
        keyword = self._normalize(keyword)
        ids = self._entries.get(keyword)
        if ids is None or portfolio_id not in ids:
            return
        ids.remove(portfolio_id)
        if not ids:
            del self._entries[keyword]
            position = bisect_left(self._sorted_keys, keyword)
            del self._sorted_keys[position]

        held = self._keywords_by_id[portfolio_id]
        held.remove(keyword)
        if not held:
            del self._keywords_by_id[portfolio_id]

    def _discard_locked(self, portfolio_id: int) -> None:
        for keyword in list(self._keywords_by_id.get(portfolio_id, ())):
            self._remove_locked(keyword, portfolio_id)

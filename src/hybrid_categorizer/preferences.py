from collections.abc import Iterable, Mapping

from hybrid_categorizer.domain.keys import normalize_description_key, normalize_store_key
from hybrid_categorizer.models import PreferenceEntry


class PreferenceBook:
    """User category corrections keyed by normalized description and optional store.

    Store-scoped entries take precedence over global ones. Keys are normalized
    with the same functions on write and read.
    """

    def __init__(self, entries: Iterable[PreferenceEntry] = ()):
        self._entries: dict[tuple[str, str], str] = {}
        for entry in entries:
            key = normalize_description_key(entry.description_key)
            if key and entry.category.strip():
                self._entries[(normalize_store_key(entry.store_key), key)] = entry.category.strip()

    @classmethod
    def from_entries(cls, entries: Iterable[PreferenceEntry | Mapping]) -> "PreferenceBook":
        return cls(
            entry if isinstance(entry, PreferenceEntry) else PreferenceEntry.model_validate(entry)
            for entry in entries
        )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> "PreferenceBook":
        """Global preferences from a raw ``{description: category}`` mapping."""
        book = cls()
        for description, category in mapping.items():
            book.record(description, category)
        return book

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def record(self, description: str, category: str, store: str | None = None) -> None:
        """Remember a correction globally and, when a store is known, for that store."""
        key = normalize_description_key(description)
        if not key or not category or not category.strip():
            return
        category = category.strip()
        self._entries[("", key)] = category
        store_key = normalize_store_key(store)
        if store_key:
            self._entries[(store_key, key)] = category

    def lookup(self, description: str, store: str | None = None) -> str | None:
        key = normalize_description_key(description)
        if not key:
            return None
        store_key = normalize_store_key(store)
        if store_key:
            scoped = self._entries.get((store_key, key))
            if scoped:
                return scoped
        return self._entries.get(("", key))

    def entries(self) -> list[PreferenceEntry]:
        return [
            PreferenceEntry(description_key=key, category=category, store_key=store_key)
            for (store_key, key), category in self._entries.items()
        ]

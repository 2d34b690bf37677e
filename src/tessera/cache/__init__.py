"""Caches: compiled templates and rendered content."""

from tessera.cache.compiled import CompiledCache, CompiledEntry
from tessera.cache.content import ContentCache, TaggedCache

__all__ = ["CompiledCache", "CompiledEntry", "ContentCache", "TaggedCache"]

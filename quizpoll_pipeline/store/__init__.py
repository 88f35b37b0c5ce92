"""Catalog store contract and file-backed implementation."""

from quizpoll_pipeline.store.base import CatalogStore
from quizpoll_pipeline.store.json_store import JsonCatalogStore

__all__ = ["CatalogStore", "JsonCatalogStore"]

"""
Application DI Container (dependency-injector).

Centralizes service creation and lifecycle management. Every service is a
process-wide singleton built from one Settings instance.

Usage::

    from paper_stream.container import ApplicationContainer

    container = ApplicationContainer()
    aggregator = container.aggregator()
    cache = container.cache_store()

    # In tests - override any provider:
    container.settings.override(providers.Object(Settings(cache_dir=tmp_path)))
    container.source_registry.override(providers.Object(fake_registry))
"""

from __future__ import annotations

import logging

from dependency_injector import containers, providers

from paper_stream.application.aggregation import PaperAggregator
from paper_stream.application.warmup import CacheWarmer, RefreshScheduler
from paper_stream.infrastructure.cache import CacheStore
from paper_stream.infrastructure.sources import build_default_registry
from paper_stream.settings import Settings

logger = logging.getLogger(__name__)


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for Paper Stream.

    Manages creation of all core services:
    - ``cache_store``: two-tier paper cache
    - ``source_registry``: real adapters plus the fallback
    - ``aggregator``: fan-out and merge
    - ``warmer`` / ``refresh_scheduler``: periodic cache refresh
    """

    settings = providers.Singleton(Settings.from_env)

    cache_store = providers.Singleton(
        CacheStore,
        cache_dir=settings.provided.cache_dir,
        ttl=settings.provided.cache_ttl,
        max_entries=settings.provided.cache_max_entries,
    )

    source_registry = providers.Singleton(
        build_default_registry,
        settings=settings,
    )

    aggregator = providers.Singleton(
        PaperAggregator,
        registry=source_registry,
        adapter_timeout=settings.provided.adapter_timeout,
        max_results=settings.provided.max_results,
    )

    warmer = providers.Singleton(
        CacheWarmer,
        cache=cache_store,
        aggregator=aggregator,
        tag_sets=settings.provided.warmup_tag_sets,
        include_preprints=settings.provided.warmup_include_preprints,
    )

    refresh_scheduler = providers.Singleton(
        RefreshScheduler,
        warmer=warmer,
        interval=settings.provided.refresh_interval,
        warmup_delay=settings.provided.warmup_delay,
    )


def create_container(settings: Settings | None = None) -> ApplicationContainer:
    """Build a container, optionally pinned to explicit settings."""
    container = ApplicationContainer()
    if settings is not None:
        container.settings.override(providers.Object(settings))
    return container


__all__ = ["ApplicationContainer", "create_container"]

"""Tests for the dependency-injector container."""

from dependency_injector import providers

from paper_stream.application.aggregation import PaperAggregator
from paper_stream.application.warmup import CacheWarmer, RefreshScheduler
from paper_stream.container import ApplicationContainer, create_container
from paper_stream.infrastructure.cache import CacheStore
from paper_stream.models import PaperSource
from paper_stream.settings import Settings

from conftest import FakeSource, make_registry


class TestContainer:
    def test_settings_override(self, temp_dir):
        container = create_container(Settings(cache_dir=temp_dir, cache_ttl=60, max_results=7))
        container.source_registry.override(providers.Object(make_registry()))

        cache = container.cache_store()
        assert isinstance(cache, CacheStore)
        assert cache.cache_dir == temp_dir
        assert cache.ttl == 60

        aggregator = container.aggregator()
        assert isinstance(aggregator, PaperAggregator)
        assert aggregator._max_results == 7

    def test_services_are_singletons(self, temp_dir):
        container = create_container(Settings(cache_dir=temp_dir))
        container.source_registry.override(providers.Object(make_registry()))
        assert container.cache_store() is container.cache_store()
        assert container.aggregator() is container.aggregator()
        assert container.warmer() is container.warmer()

    def test_registry_override_flows_into_aggregator(self, temp_dir):
        container = create_container(Settings(cache_dir=temp_dir))
        registry = make_registry(FakeSource(PaperSource.ARXIV))
        container.source_registry.override(providers.Object(registry))

        assert container.aggregator().registry is registry

    def test_warmer_and_scheduler_wiring(self, temp_dir):
        settings = Settings(
            cache_dir=temp_dir,
            warmup_tag_sets=(("nlp",),),
            refresh_interval=120,
        )
        container = create_container(settings)
        container.source_registry.override(providers.Object(make_registry()))

        warmer = container.warmer()
        assert isinstance(warmer, CacheWarmer)
        assert warmer.tag_sets == [("nlp",)]
        assert isinstance(container.refresh_scheduler(), RefreshScheduler)

    def test_default_container_reads_environment(self, monkeypatch, temp_dir):
        monkeypatch.setenv("PAPER_STREAM_CACHE_DIR", str(temp_dir))
        monkeypatch.setenv("PAPER_STREAM_MAX_RESULTS", "3")
        container = ApplicationContainer()
        assert container.settings().max_results == 3
        assert container.settings().cache_dir == temp_dir

"""Application layer: aggregation and cache warm-up built on the sources and the cache."""

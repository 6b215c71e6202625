"""Infrastructure layer: external source adapters and the paper cache."""

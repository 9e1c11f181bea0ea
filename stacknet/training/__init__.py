"""Performance functions, metrics and config-driven training pipelines."""

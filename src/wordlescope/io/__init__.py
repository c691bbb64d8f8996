"""Audio sources and grid renderers."""

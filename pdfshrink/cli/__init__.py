"""CLI command groups registered by ``pdfshrink.main``."""

"""AI provider adapters and the lazily configured client accessor."""

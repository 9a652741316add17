"""Framework layer: configuration, startup checks and date normalization."""

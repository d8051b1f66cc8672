"""Tool layer — schemas derived from argument models and per-provider tool tables."""

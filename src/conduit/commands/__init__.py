"""Command identifiers and the per-construct command registry."""

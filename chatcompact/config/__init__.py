"""Configuration schema, loading and live updates."""

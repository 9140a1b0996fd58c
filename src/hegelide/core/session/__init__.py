"""Terminal session registry and lifecycle."""

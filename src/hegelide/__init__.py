"""
Hegel IDE: terminal multiplexer core with a local review control plane.

Hegel IDE runs several interactive shells side by side and exposes a small
loopback HTTP endpoint so that tools running inside those shells can ask the
UI to open review tabs for files.

Package layout (src/hegelide/):
  core/            config, logging, events, session registry and lifecycle
  os/              PTY handles per platform, foreground process probe
  controlplane/    FastAPI app and uvicorn server for POST /review
  cli/             Click CLI entry point
"""

__version__ = "0.4.0"
__all__ = ["__version__"]

"""
Runtime context — the one piece of process-wide configuration state.

Holds the values persisted by the last *successful* installation so
status endpoints can answer without re-reading .env.  It is written
once per successful pipeline run by the install use case and cleared
only by an explicit reset (process start or tests):

    - Install use case:  install.py → context.set_installed_config(cfg)
    - Status endpoints:  context.get_installed_config()
    - Tests:             context.reset()

Per-request database credentials never live here — they travel in an
explicit ``RuntimeConfig`` threaded through the pipeline.
"""

from __future__ import annotations

from typing import Optional


_installed_config: Optional[dict[str, str]] = None


def set_installed_config(values: dict[str, str]) -> None:
    """Register the persisted configuration of the current install."""
    global _installed_config
    _installed_config = dict(values)


def get_installed_config() -> Optional[dict[str, str]]:
    """Return the persisted configuration, or None if nothing installed yet."""
    if _installed_config is None:
        return None
    return dict(_installed_config)


def reset() -> None:
    """Forget the installed configuration."""
    global _installed_config
    _installed_config = None

"""Synthetic viewer load and discontinuity-sequence monitoring for live SSAI sessions.

The package splits a target audience curve across workers, lets each worker
create and retire playback sessions to follow its share of the curve, and
alerts when a sampled media manifest's discontinuity sequence goes backward.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]

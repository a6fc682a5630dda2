"""Monte Carlo win-probability engine for playoff-qualification betting pools."""

from __future__ import annotations

"""
Native VRF coordination package.

A consumer asks the coordinator for randomness; an untrusted fulfiller solves
a signature puzzle seeded by the previous random value; the coordinator checks
the solution, derives the next value in the chain, pays the fulfiller and
hands the value to the consumer's callback exactly once.

Only light, stable exports are surfaced here to avoid import cycles.
"""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__"]

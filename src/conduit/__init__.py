"""Conduit package root."""

from conduit.exceptions import NeverThrown
from conduit.invariants import never

__all__ = ["__version__", "NeverThrown", "never"]

__version__ = "0.1.0"

"""
Scrying module - token detection mapped into scene coordinates.
"""
from .orb import SimpleScryingOrb
from .forge import ScryForge
from .loop import ScryingLoop

__all__ = [
    "SimpleScryingOrb",
    "ScryForge",
    "ScryingLoop",
]

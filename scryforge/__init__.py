"""
scryforge - tracks physical tabletop tokens through a camera and maps them
into virtual scene coordinates.
"""

__version__ = "0.1.0"

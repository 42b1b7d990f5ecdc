"""
blocktint

Derives one representative color per block texture packed in an archive and
keeps those colors in a checksum-validated cache for map renderers.
"""

__version__ = "1.0.0"

"""
blocktint Colors Module

Provides the Color value type, RGBA8888 packing and the representative color
extraction policies used for block textures.
"""

__version__ = "1.0.0"

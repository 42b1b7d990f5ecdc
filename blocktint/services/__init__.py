"""
blocktint services: archive access, decoding, color extraction and caching.
"""

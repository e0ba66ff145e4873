"""
Cache domain - entries, keys and TTLs.
"""

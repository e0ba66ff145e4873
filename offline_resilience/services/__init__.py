"""
Service layer - fallback orchestration, retry queue, privacy guard and the
content facade.
"""

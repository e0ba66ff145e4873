"""
Domain layer - cache and content models, error taxonomy.
"""

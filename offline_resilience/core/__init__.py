"""
Core configuration, logging, telemetry and scheduling.
"""

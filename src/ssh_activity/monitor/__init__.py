"""
Polling daemon that drives the correlation pipeline.
"""

__all__ = ["service"]

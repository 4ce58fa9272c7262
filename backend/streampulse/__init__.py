"""
StreamPulse - Live streaming performance monitor backend
"""

__version__ = "1.0.0"

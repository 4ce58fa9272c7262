"""
StreamPulse - API Route Modules
"""

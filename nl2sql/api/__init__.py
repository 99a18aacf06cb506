"""
HTTP API module initialization.
"""

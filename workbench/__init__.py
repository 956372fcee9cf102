"""
Chat workbench - conversation and request lifecycle engine for
OpenRouter-compatible chat completion endpoints.
"""

__version__ = "0.1.0"

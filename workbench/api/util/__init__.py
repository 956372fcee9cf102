"""
Utility modules for the API (completion client).
"""

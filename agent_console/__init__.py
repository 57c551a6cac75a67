"""
Agent Console
Multi-tenant admin API for voice AI agent configuration
"""

__version__ = "1.0.0"

"""
Distributed Snowflake key generator package.
"""

__version__ = "0.1.0"

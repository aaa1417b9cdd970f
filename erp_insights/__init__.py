"""
ERP Insights Engine

Business intelligence aggregation behind the /insights endpoints.
"""

__version__ = "1.0.0"

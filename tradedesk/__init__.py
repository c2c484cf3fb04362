"""
Order-book and order-entry core for a single-symbol trading view
"""

__version__ = "1.0.0"

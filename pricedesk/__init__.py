"""
Pricing Desk - Classification and pricing engine for a distributor's pricing desk
"""

__version__ = "0.1.0"

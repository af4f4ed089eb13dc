"""
Marketplace Analytics

Report engine for the marketplace admin console: trends, segmentation,
cohort retention, revenue forecasts and CSV/JSON exports computed from the
storefront's users, products and orders.
"""

__version__ = "1.0.0"

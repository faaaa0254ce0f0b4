"""
Book Club API.

A REST service for a small book club: member accounts, a searchable book
catalog, checkouts and returns, and per-book reviews.
"""

__version__ = "0.1.0"

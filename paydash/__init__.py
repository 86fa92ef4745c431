"""
Paydash - payments analytics aggregation and insight engine.

Computes KPIs, period comparisons and breakdowns over a transaction ledger,
routes keyword searches to canned analytics queries, and raises deduplicated
threshold notifications.
"""

__version__ = "0.1.0"

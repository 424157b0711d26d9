"""
REST API for the delivery scheduler.

Exposes the BigQuery task tables (and the Sheets mapping table) via HTTP
endpoints for the scheduler UI.
"""

__version__ = "1.0.0"

"""
Sales Data Warehouse

Consolidates CRM and ERP extracts into a cleansed layer and a star schema
for sales reporting.
"""

__version__ = "1.0.0"

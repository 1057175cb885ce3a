"""
HTTP routes for the DataTables engine.
"""

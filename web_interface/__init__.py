"""
Web interface for the Routing Policy Editor: Flask API and SQLite record store.
"""

"""HTTP API for Tradal Coach."""

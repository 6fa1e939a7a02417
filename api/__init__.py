"""Flask REST API for the car ledger."""

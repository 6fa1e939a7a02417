"""Command line entry point for the car ledger."""

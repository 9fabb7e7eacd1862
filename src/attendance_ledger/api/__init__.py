"""HTTP API for the attendance ledger."""

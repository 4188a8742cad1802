"""HTTP API for verification and analytics."""

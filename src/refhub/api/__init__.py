"""HTTP API for RefHub."""

"""Component build driver."""

"""HTTP API for the Glimpse matching service."""

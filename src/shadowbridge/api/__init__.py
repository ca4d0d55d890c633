"""HTTP API for the relayer."""

"""HTTP API for the deployer service."""

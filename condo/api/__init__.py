"""HTTP API for debt, payment history and allocation tools."""

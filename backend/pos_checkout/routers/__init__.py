"""HTTP routers of the terminal API."""

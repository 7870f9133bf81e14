"""HTTP routers of the chunk inspection service."""

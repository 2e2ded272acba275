"""Application core: CORS, error handlers, dependencies."""

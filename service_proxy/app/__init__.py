"""
Edge Proxy application package.

Structure:
- app.main: FastAPI app and service wiring.
- app.domain: Origin policy, header composition and the request gateway.
- app.caching: Cache classification, stores and the cache manager.
- app.adapters: HTTP client for the upstream API.
"""

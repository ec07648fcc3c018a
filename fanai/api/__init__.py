# API package - FastAPI routers

"""
FastAPI integration: error handlers and lifespan wiring.
"""

"""
Application layer: FastAPI app, API routes, the AI service entry point and
the container that wires every component together at startup.
"""

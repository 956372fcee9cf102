"""
API package for the chat workbench FastAPI server.

Contains:
- main.py: FastAPI application with lifespan management
- models.py: Pydantic models for API requests/responses
- dependencies.py: FastAPI dependencies
- routers/: Route handlers for chat, threads, presets and state
- util/: Utility modules (completion client)
"""

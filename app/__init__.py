"""
Event Reviews API Application Package

Reviews, ratings and moderation for events.

Package Structure:
- config.py: Application configuration using Pydantic Settings
- database.py: SQLAlchemy database connection and session management
- exceptions.py: Domain errors raised by services
- main.py: FastAPI application factory and configuration
- dependencies.py: Dependency injection functions
- models/: SQLAlchemy ORM models
- schemas/: Pydantic request/response schemas
- routers/: API route handlers
- services/: Business logic (moderation, ratings, storage, notifications)
"""

__version__ = "0.1.0"

"""Infrastructure layer: database, repositories, model backend, workspace.

This layer depends on stdlib and third-party libs (SQLAlchemy, httpx).
It may import domain types and protocols, never services or commands.
"""

"""Domain layer: doctrine, events, envelope, retrieval, prompt and parsing rules.

This layer depends only on stdlib, pydantic, ruamel.yaml and structlog.
It must never import from services, infrastructure, commands, or config.
"""

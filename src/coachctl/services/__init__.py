"""Service layer: turn orchestration, policy gates and event dispatch.

Services may import from domain and infrastructure layers.
They must never import from commands or output.
"""

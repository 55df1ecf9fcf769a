"""
Process-level orchestration.

``ApplicationContext`` wires configuration, the database, the service
container and the bot together and owns their shutdown order.
"""

from src.core.infra.application_context import ApplicationContext

__all__ = ["ApplicationContext"]

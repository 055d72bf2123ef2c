from typing import Protocol
import re

from deskagent.domain.models.agent_state import Scope


def vector_store_name(identity: str, tenant_id: str) -> str:
    """Name of the knowledge base store of one tenant"""
    return f"kb_{identity}_{re.sub(r'[^a-zA-Z0-9_-]', '_', tenant_id or 'default')}"


class VectorStoreResolver(Protocol):
    """Finds the vector store file search runs against for a tenant"""

    async def resolve(self, scope: Scope, identity: str) -> str:
        """Return the store id, raising TransportError when the lookup fails"""
        ...

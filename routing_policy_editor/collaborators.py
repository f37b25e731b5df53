"""
Interfaces of the external systems the editor talks to.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import PolicyRecord


class RecordStore(ABC):
    """Holds the serialized policy records."""

    @abstractmethod
    def fetch_policy_record(self, policy_id: str) -> Optional[PolicyRecord]:
        """Return the record, or None if it does not exist."""
        pass

    @abstractmethod
    def update_record_store(self, policy_id: str, fields: Dict[str, Any]) -> bool:
        """Write ``fields`` (name, description, body, ...) to the record."""
        pass

    @abstractmethod
    def delete_record_store(self, policy_id: str) -> bool:
        """Delete the record."""
        pass


class RoutingEngine(ABC):
    """The routing engine that executes policies, plus its event subscriptions."""

    @abstractmethod
    def create_or_update_engine_policy(self, org_id: str, engine_id: Optional[str],
                                       policy_json: str) -> Dict[str, Any]:
        """Create (no ``engine_id``) or update a policy; the result carries ``id``."""
        pass

    @abstractmethod
    def delete_engine_policy(self, org_id: str, engine_id: str) -> bool:
        pass

    @abstractmethod
    def sync_event_subscriptions(self, org_id: str, engine_id: str,
                                 event_nodes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Make the engine's subscriptions for a policy match its event nodes."""
        pass

    @abstractmethod
    def delete_event_subscriptions(self, org_id: str, engine_id: str) -> int:
        """Delete every subscription for a policy; returns how many went."""
        pass

"""
Editor session — one open policy and the collaborators it is saved to.

The session owns the graph document for as long as a policy is open. Save and
delete talk to several external systems in a fixed order; failures of the
routing engine or event service are tolerated and reported in the result,
while a record-store failure fails the whole operation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .clipboard import ClipboardManager
from .collaborators import RecordStore, RoutingEngine
from .config import EditorSettings
from .document import GraphDocument
from .exceptions import CollaboratorError
from .legacy_converter import LegacyFormatConverter
from .models import DEFAULT_POLICY_COLOR, EditorContext, PolicyNode, PolicyRecord, PolicyState
from .payload_builder import PayloadBuilder, SavePayload


EVENT_NODE_TYPE = 'event'
EVENT_TEMPLATE_CLASS = 'ModEvent'

MSG_SAVED = 'Policy saved successfully'
MSG_SAVED_NO_ENGINE = 'Policy saved (engine sync unavailable)'
MSG_DELETED = 'Policy deleted successfully'
MSG_DELETED_NO_ENGINE = 'Policy deleted (engine sync unavailable)'


@dataclass
class OperationResult:
    """Outcome of a session operation."""
    success: bool
    message: str = ''
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {'success': self.success, 'message': self.message, **self.data}


@dataclass
class SaveResult(OperationResult):
    """A save can succeed while the engine or event sync did not."""
    saved_to_engine: bool = False
    events_synced: bool = False
    engine_id: Optional[str] = None
    payload: Optional[SavePayload] = None

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({
            'savedToEngine': self.saved_to_engine,
            'eventsSynced': self.events_synced,
            'engineId': self.engine_id,
        })
        return result


def extract_event_nodes(nodes: List[PolicyNode]) -> List[Dict[str, Any]]:
    """Event-subscription descriptors for every event node in the graph."""
    event_nodes = []
    for node in nodes:
        if node.type != EVENT_NODE_TYPE and node.template_class != EVENT_TEMPLATE_CLASS:
            continue
        data = node.data
        event_nodes.append({
            'id': node.id,
            'name': str(data.get('label') or data.get('name') or 'Event'),
            'eventType': str(data.get('eventType') or 'salesforce'),
            'enabled': bool(data.get('enabled', True)),
            'config': data.get('config'),
            'subscriptionId': data.get('subscriptionId'),
        })
    return event_nodes


class PolicyEditorSession:
    """Loads, edits, saves and deletes a single policy."""

    def __init__(self, record_store: RecordStore, engine: Optional[RoutingEngine] = None,
                 settings: Optional[EditorSettings] = None):
        self.record_store = record_store
        self.engine = engine
        self.settings = settings or EditorSettings()
        self.converter = LegacyFormatConverter()
        self.builder = PayloadBuilder(self.settings.platform_config())
        self.logger = logging.getLogger(__name__)

        self.record: Optional[PolicyRecord] = None
        self.document: Optional[GraphDocument] = None
        self.clipboard: Optional[ClipboardManager] = None

    @property
    def is_open(self) -> bool:
        return self.document is not None

    # ------------------------------------------------------------------
    # Load / close
    # ------------------------------------------------------------------

    def load(self, policy_id: str, context: Optional[EditorContext] = None) -> OperationResult:
        """Open a policy. A malformed body opens as an empty graph."""
        try:
            record = self.record_store.fetch_policy_record(policy_id)
        except CollaboratorError as e:
            self.logger.error(f"Failed to load policy {policy_id}: {e}")
            return OperationResult(False, f"Failed to load policy: {e}")
        if record is None:
            return OperationResult(False, f"Policy {policy_id} not found")

        body = self.converter.convert(record.body)
        state = PolicyState(
            id=record.id,
            name=record.name,
            description=record.description or '',
            color=record.color or DEFAULT_POLICY_COLOR,
            grid=True if record.grid is None else record.grid,
            is_active=record.is_active,
        )
        document = GraphDocument(self.settings)
        document.initialize(state, body, context)

        self.record = record
        self.document = document
        self.clipboard = ClipboardManager(document)
        self.logger.info(f"Opened policy {record.id} ({len(body.nodes)} nodes, {len(body.edges)} edges)")
        return OperationResult(True, 'Policy loaded', {'policyId': record.id})

    def close(self):
        """Discard the in-memory document."""
        if self.document is not None:
            self.document.reset()
        self.record = None
        self.document = None
        self.clipboard = None

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save(self) -> SaveResult:
        """Engine first, then the record store, then event subscriptions."""
        document = self.document
        if document is None or self.record is None:
            return SaveResult(False, 'No policy is open')
        if document.policy.is_saving:
            return SaveResult(False, 'A save is already in progress')

        document.mark_saving(True)
        try:
            return self._save(document, self.record)
        finally:
            if document.policy.is_saving:
                document.mark_saving(False)

    def _save(self, document: GraphDocument, record: PolicyRecord) -> SaveResult:
        org_id = self.settings.organization_id
        engine_id = record.engine_id
        payload = self.builder.build(
            PayloadBuilder.policy_from_document(document, record.policy_type, engine_id)
        )

        saved_to_engine = False
        if self.engine is not None and org_id:
            try:
                result = self.engine.create_or_update_engine_policy(org_id, engine_id, payload.policy_json)
                engine_id = str(result.get('id')) if result.get('id') is not None else engine_id
                saved_to_engine = True
            except CollaboratorError as e:
                self.logger.error(f"Engine save failed for policy {record.id}: {e}")

        fields = {
            'name': payload.name,
            'description': payload.description,
            'body': payload.body_json,
            'policy': payload.policy_json,
            'phoneNumbers': payload.phone_numbers,
            'engineId': engine_id,
            'color': document.policy.color,
            'grid': document.policy.grid,
        }
        try:
            stored = self.record_store.update_record_store(record.id, fields)
        except CollaboratorError as e:
            self.logger.error(f"Record store save failed for policy {record.id}: {e}")
            return SaveResult(False, f"Failed to save policy: {e}", saved_to_engine=saved_to_engine,
                              engine_id=engine_id, payload=payload)
        if not stored:
            self.logger.error(f"Record store rejected save of policy {record.id}")
            return SaveResult(False, 'Failed to save policy', saved_to_engine=saved_to_engine,
                              engine_id=engine_id, payload=payload)

        record.engine_id = engine_id
        record.name = payload.name
        record.description = payload.description
        record.body = payload.body_json
        document.mark_saved()

        events_synced = False
        event_nodes = extract_event_nodes(document.nodes)
        if self.engine is not None and org_id and engine_id and event_nodes:
            try:
                self.engine.sync_event_subscriptions(org_id, engine_id, event_nodes)
                events_synced = True
            except CollaboratorError as e:
                self.logger.warning(f"Event subscription sync failed for policy {record.id}: {e}")

        message = MSG_SAVED if saved_to_engine else MSG_SAVED_NO_ENGINE
        self.logger.info(f"{message}: {record.id}")
        return SaveResult(True, message, saved_to_engine=saved_to_engine, events_synced=events_synced,
                          engine_id=engine_id, payload=payload)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, policy_id: Optional[str] = None) -> OperationResult:
        """Event subscriptions, then engine, then record store."""
        policy_id = policy_id or (self.record.id if self.record else None)
        if not policy_id:
            return OperationResult(False, 'No policy to delete')

        try:
            record = self.record_store.fetch_policy_record(policy_id)
        except CollaboratorError as e:
            self.logger.warning(f"Could not look up engine id for policy {policy_id}: {e}")
            record = None
        engine_id = record.engine_id if record else None
        org_id = self.settings.organization_id

        deleted_from_engine = False
        if self.engine is not None and org_id and engine_id:
            try:
                self.engine.delete_event_subscriptions(org_id, engine_id)
            except CollaboratorError as e:
                self.logger.warning(f"Failed to delete event subscriptions for policy {policy_id}: {e}")
            try:
                self.engine.delete_engine_policy(org_id, engine_id)
                deleted_from_engine = True
            except CollaboratorError as e:
                self.logger.error(f"Engine delete failed for policy {policy_id}: {e}")

        try:
            deleted = self.record_store.delete_record_store(policy_id)
        except CollaboratorError as e:
            self.logger.error(f"Record store delete failed for policy {policy_id}: {e}")
            return OperationResult(False, f"Failed to delete policy: {e}")
        if not deleted:
            return OperationResult(False, 'Failed to delete policy')

        if self.record is not None and self.record.id == policy_id:
            self.close()

        message = MSG_DELETED if deleted_from_engine else MSG_DELETED_NO_ENGINE
        self.logger.info(f"{message}: {policy_id}")
        return OperationResult(True, message, {'deletedFromEngine': deleted_from_engine})

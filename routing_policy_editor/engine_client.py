"""
HTTP client for the routing engine and its event-subscription service.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import requests as http_requests

from .collaborators import RoutingEngine
from .config import EditorSettings
from .exceptions import EngineRequestError


class RoutingEngineClient(RoutingEngine):
    """``RoutingEngine`` over HTTP with bearer-token auth."""

    def __init__(self, engine_host: str, token: str, events_host: Optional[str] = None,
                 timeout: float = 30, session: Optional[http_requests.Session] = None):
        self.engine_host = (engine_host or '').rstrip('/')
        self.events_host = (events_host or '').rstrip('/')
        self.token = token
        self.timeout = timeout
        self.session = session or http_requests.Session()
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings: EditorSettings) -> 'RoutingEngineClient':
        return cls(
            engine_host=settings.engine_host or '',
            token=settings.engine_token or '',
            events_host=settings.events_host,
            timeout=settings.request_timeout,
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, url: str, body: Any = None) -> Any:
        headers = {'Authorization': f'Bearer {self.token}'}
        if body is not None:
            headers['Content-Type'] = 'application/json'
        try:
            resp = self.session.request(method, url, json=body, headers=headers, timeout=self.timeout)
        except http_requests.exceptions.Timeout as e:
            raise EngineRequestError(f"{method} {url} timed out after {self.timeout}s",
                                     details={'url': url}) from e
        except http_requests.exceptions.RequestException as e:
            raise EngineRequestError(f"{method} {url} failed: {e}", details={'url': url}) from e

        if not resp.ok:
            raise EngineRequestError(
                f"{method} {url} returned {resp.status_code}",
                status_code=resp.status_code,
                details={'url': url, 'body': resp.text[:500]},
            )
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    def _engine_url(self, path: str) -> str:
        if not self.engine_host:
            raise EngineRequestError("Routing engine host is not configured")
        return f"{self.engine_host}{path}"

    def _events_url(self, org_id: str, subscription_id: Optional[str] = None) -> str:
        if not self.events_host:
            raise EngineRequestError("Event subscription host is not configured")
        url = f"{self.events_host}/v1/events/{org_id}/subscriptions"
        return f"{url}/{subscription_id}" if subscription_id else url

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    def create_or_update_engine_policy(self, org_id: str, engine_id: Optional[str],
                                       policy_json: str) -> Dict[str, Any]:
        body = json.loads(policy_json) if isinstance(policy_json, str) else policy_json
        base = f"/organisation/{org_id}/dial-plan/policy-destination-number"
        if engine_id:
            result = self._request('PUT', self._engine_url(f"{base}/{engine_id}"), body)
        else:
            result = self._request('POST', self._engine_url(base), body)
        result = result if isinstance(result, dict) else {}
        if engine_id and 'id' not in result:
            result['id'] = engine_id
        self.logger.info(f"Engine policy {'updated' if engine_id else 'created'}: {result.get('id')}")
        return result

    def delete_engine_policy(self, org_id: str, engine_id: str) -> bool:
        self._request('DELETE', self._engine_url(f"/organisation/{org_id}/dial-plan/policy/{engine_id}"))
        self.logger.info(f"Engine policy {engine_id} deleted")
        return True

    # ------------------------------------------------------------------
    # Event subscriptions
    # ------------------------------------------------------------------

    def list_event_subscriptions(self, org_id: str, engine_id: Optional[str] = None) -> List[Dict[str, Any]]:
        subscriptions = self._request('GET', self._events_url(org_id)) or []
        if engine_id is None:
            return subscriptions
        return [s for s in subscriptions if str(s.get('policyId')) == str(engine_id)]

    def sync_event_subscriptions(self, org_id: str, engine_id: str,
                                 event_nodes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Update matched subscriptions, create new ones, delete orphans.

        A failure on one subscription is logged and the rest still sync.
        """
        existing = {s.get('id'): s for s in self.list_event_subscriptions(org_id, engine_id)}
        synced = []
        kept = set()

        for node in event_nodes:
            fields = {
                'name': node.get('name'),
                'eventType': node.get('eventType'),
                'enabled': node.get('enabled', True),
                'config': node.get('config'),
            }
            subscription_id = node.get('subscriptionId')
            try:
                if subscription_id and subscription_id in existing:
                    synced.append(self._request('PUT', self._events_url(org_id, subscription_id), fields))
                    kept.add(subscription_id)
                else:
                    fields['policyId'] = engine_id
                    synced.append(self._request('POST', self._events_url(org_id), fields))
            except EngineRequestError as e:
                self.logger.error(f"Failed to sync event node {node.get('id')}: {e}")

        for subscription_id in existing:
            if subscription_id in kept:
                continue
            try:
                self._request('DELETE', self._events_url(org_id, subscription_id))
            except EngineRequestError as e:
                self.logger.error(f"Failed to delete orphaned subscription {subscription_id}: {e}")

        return synced

    def delete_event_subscriptions(self, org_id: str, engine_id: str) -> int:
        subscriptions = self.list_event_subscriptions(org_id, engine_id)
        deleted = 0
        for subscription in subscriptions:
            try:
                self._request('DELETE', self._events_url(org_id, subscription.get('id')))
                deleted += 1
            except EngineRequestError as e:
                self.logger.error(f"Failed to delete subscription {subscription.get('id')}: {e}")
        self.logger.info(
            f"Deleted {deleted} of {len(subscriptions)} subscription(s) for policy {engine_id}"
        )
        return deleted

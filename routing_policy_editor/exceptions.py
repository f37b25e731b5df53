"""
Exceptions for the Routing Policy Editor core.
"""

from typing import Optional, Any, Dict


class PolicyEditorError(Exception):
    """Base exception for all policy editor errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class MalformedPolicyError(PolicyEditorError):
    """Raised when a stored policy body cannot be parsed into a graph."""
    pass


class DanglingReferenceError(PolicyEditorError):
    """Raised when an edge or selection points at a node that does not exist.

    Cascading removal makes this unreachable in normal operation; seeing it
    means a document invariant was broken.
    """

    def __init__(self, message: str, missing_ids: Optional[list] = None):
        super().__init__(message, {'missing_ids': missing_ids or []})
        self.missing_ids = missing_ids or []


class CollaboratorError(PolicyEditorError):
    """Raised when an external collaborator (record store, engine) fails."""

    def __init__(self, message: str, collaborator: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.collaborator = collaborator


class EngineRequestError(CollaboratorError):
    """Raised when a routing engine HTTP request fails."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 'routing_engine', details)
        self.status_code = status_code


class RecordStoreError(CollaboratorError):
    """Raised when the policy record store cannot be read or written."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 'record_store', details)

"""
Custom exceptions for the database instance operator.

This module defines all custom exceptions used throughout the operator
for consistent error handling and reporting. The HTTP status codes are
used by the control API; the reconciliation core only cares about the
exception type.
"""
from typing import Optional, Dict, Any, List
from fastapi import status


class OperatorError(Exception):
    """
    Base exception for all operator errors.

    All custom exceptions should inherit from this base class.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(OperatorError):
    """
    Raised when an object does not exist in the object store.

    Expected during reconciliation: it drives the create and
    already-deleted branches.
    """

    def __init__(self, kind: str, namespace: str, name: str, details: Optional[Dict[str, Any]] = None):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        message = f"{kind} '{namespace}/{name}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details or {"kind": kind, "namespace": namespace, "name": name},
        )


class UnsupportedDatabaseKindError(OperatorError):
    """
    Raised when credentials are requested for an unknown database type.

    Terminal for the reconciliation attempt.
    """

    def __init__(self, database_type: str, details: Optional[Dict[str, Any]] = None):
        self.database_type = database_type
        super().__init__(
            message=f"unsupported database type: {database_type}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details or {"database_type": database_type},
        )


class InvalidInstanceError(OperatorError):
    """
    Raised when a stored DatabaseInstance does not match the schema
    (e.g. negative replicas).

    Terminal for the reconciliation attempt: retrying cannot fix the object.
    """

    def __init__(self, namespace: str, name: str, errors: List[Dict[str, Any]]):
        self.namespace = namespace
        self.name = name
        self.errors = [
            {
                "loc": ".".join(str(part) for part in error.get("loc", ())),
                "msg": str(error.get("msg", "")),
            }
            for error in errors
        ]
        summary = "; ".join(f"{e['loc']}: {e['msg']}" for e in self.errors)
        super().__init__(
            message=f"DatabaseInstance '{namespace}/{name}' is invalid: {summary}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"namespace": namespace, "name": name, "errors": self.errors},
        )


class StoreError(OperatorError):
    """
    Raised when a Kubernetes API operation fails for any reason other
    than not-found or a version conflict.
    """

    def __init__(
        self,
        message: str,
        api_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.api_status = api_status
        merged = dict(details or {})
        if api_status is not None:
            merged.setdefault("api_status", api_status)
        super().__init__(
            message=f"Kubernetes error: {message}",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details=merged,
        )


class ConflictError(OperatorError):
    """
    Raised when a write is rejected because the object changed since it was
    read, or already exists on create.

    The whole reconciliation is retried from a fresh read.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


# Export all exceptions
__all__ = [
    "OperatorError",
    "NotFoundError",
    "UnsupportedDatabaseKindError",
    "InvalidInstanceError",
    "StoreError",
    "ConflictError",
]

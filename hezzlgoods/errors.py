"""Errors raised by the goods service."""

from __future__ import annotations


class ServiceError(Exception):
    """Base class of every error the service reports."""

    default_message = "service error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class ProjectNotFoundError(ServiceError):
    default_message = "project not found"


class GoodsNotFoundError(ServiceError):
    default_message = "goods not found"


class InternalServerError(ServiceError):
    default_message = "internal server error"


class CacheMissError(ServiceError):
    default_message = "cache miss"


class WorkerDoneError(ServiceError):
    default_message = "worker is done"
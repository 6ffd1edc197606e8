"""Uniform result shape for catalog service operations.

Mutations never mix ``None``, ``False`` and raised errors: every one returns a
``ServiceResult`` and callers branch on ``status``.
"""
import enum
import functools
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from storefront.extensions import db

logger = logging.getLogger(__name__)


class ResultStatus(str, enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    FAILURE = "failure"


@dataclass
class ServiceResult:
    status: ResultStatus = ResultStatus.OK
    value: Any = None
    error: str | None = None

    @property
    def ok(self):
        return self.status is ResultStatus.OK

    @classmethod
    def success(cls, value=None):
        return cls(ResultStatus.OK, value=value)

    @classmethod
    def not_found(cls, error):
        return cls(ResultStatus.NOT_FOUND, error=error)

    @classmethod
    def invalid(cls, error):
        return cls(ResultStatus.INVALID, error=error)

    @classmethod
    def failure(cls, error):
        return cls(ResultStatus.FAILURE, error=error)


class ProductLockTimeout(Exception):
    """Per-product write lock could not be acquired in time."""


def persistence_guard(action):
    """Turn persistence errors in a mutation into a rolled-back FAILURE result."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except (SQLAlchemyError, ProductLockTimeout) as e:
                db.session.rollback()
                logger.exception("%s failed (args=%r)", action, args)
                return ServiceResult.failure(f"{action} failed: {e.__class__.__name__}")

        return wrapper

    return decorator

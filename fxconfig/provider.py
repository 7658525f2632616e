"""Lazy, validated, thread-safe construction of service instances."""

from __future__ import annotations

import threading
from typing import Callable, Generic, Protocol, TypeVar

from fxconfig.validation import ValidationContext


class Validatable(Protocol):
    """A configuration that can validate itself against a validation context."""

    def validate(self, validation_context: ValidationContext) -> None:
        """Raise an exception if the configuration is invalid."""
        ...


T = TypeVar("T")
C = TypeVar("C", bound=Validatable)


class Provider(Generic[T, C]):
    """Builds a service from its configuration once, on first use.

    The configuration is validated before the factory runs; the outcome,
    instance or error, is cached for every later call.
    """

    def __init__(
        self,
        factory: Callable[[C], T],
        cfg: C,
        validation_context: ValidationContext,
    ) -> None:
        self._factory = factory
        self._cfg = cfg
        self._validation_context = validation_context
        self._lock = threading.Lock()
        self._done = False
        self._instance: T | None = None
        self._error: BaseException | None = None

    def get(self) -> T:
        """Return the instance, building it on the first call; re-raise a cached failure."""
        with self._lock:
            if not self._done:
                try:
                    self._cfg.validate(self._validation_context)
                    self._instance = self._factory(self._cfg)
                except Exception as exc:
                    self._error = exc
                finally:
                    self._done = True
        if self._error is not None:
            raise self._error
        return self._instance  # type: ignore[return-value]

    def validate(self) -> None:
        """Validate the configuration without building anything."""
        self._cfg.validate(self._validation_context)
"""
Dynamic instantiation of record types.

The mapping engine creates one record per row without knowing the record type
at import time. ``ObjectFactory.for_type`` returns a cached factory for a class
which is then called once per row through ``new_instance()``.

Two strategies are available:

    PRECOMPILED  the constructor signature is checked once and the metaclass
                 call is bound once; every ``new_instance()`` is a plain call.
    GENERIC      the signature is resolved and bound again on every call,
                 useful for classes whose constructor is patched at runtime.

Both strategies reject non-classes, abstract classes and classes whose
constructor needs arguments when the factory is built, and wrap constructor
failures in ``ObjectCreationError``.
"""

import enum
import functools
import inspect
import logging
from typing import Any, Callable, Generic, TypeVar

from sheet2records.exceptions import ObjectCreationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FactoryStrategy(enum.Enum):
    PRECOMPILED = "precompiled"
    GENERIC = "generic"


def _check_instantiable(cls: Any) -> inspect.Signature:
    if not inspect.isclass(cls):
        raise ObjectCreationError(f"Not a class: {cls!r}")
    if inspect.isabstract(cls):
        raise ObjectCreationError(f"Cannot instantiate abstract class {cls.__name__}")
    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError) as exc:
        raise ObjectCreationError(
            f"Cannot inspect the constructor of {cls.__name__}", cause=exc
        ) from exc
    try:
        signature.bind()
    except TypeError as exc:
        raise ObjectCreationError(
            f"{cls.__name__} cannot be constructed without arguments", cause=exc
        ) from exc
    return signature


class ObjectFactory(Generic[T]):
    """Creates instances of one class through its zero-argument constructor."""

    strategy: FactoryStrategy

    def __init__(self, cls: type[T]):
        _check_instantiable(cls)
        self._cls = cls

    @property
    def target_type(self) -> type[T]:
        return self._cls

    def new_instance(self) -> T:
        raise NotImplementedError

    def _creation_failed(self, exc: Exception) -> ObjectCreationError:
        return ObjectCreationError(
            f"Failed to create an instance of {self._cls.__name__}", cause=exc
        )

    @staticmethod
    def build(
        cls: type[T], strategy: FactoryStrategy = FactoryStrategy.PRECOMPILED
    ) -> "ObjectFactory[T]":
        """
        Build a new factory for ``cls``.

        :raises ObjectCreationError: ``cls`` cannot be instantiated without arguments
        """
        if strategy is FactoryStrategy.PRECOMPILED:
            return PrecompiledObjectFactory(cls)
        elif strategy is FactoryStrategy.GENERIC:
            return GenericObjectFactory(cls)
        else:
            raise ValueError(f"Unknown factory strategy: {strategy}")

    @staticmethod
    def for_type(
        cls: type[T], strategy: FactoryStrategy = FactoryStrategy.PRECOMPILED
    ) -> "ObjectFactory[T]":
        """Like ``build`` but returns the same factory for the same arguments."""
        return _cached_factory(cls, strategy)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._cls.__qualname__})"


@functools.lru_cache(maxsize=None)
def _cached_factory(cls: type, strategy: FactoryStrategy) -> ObjectFactory:
    logger.debug(f"Building {strategy.value} factory for {cls.__qualname__}")
    return ObjectFactory.build(cls, strategy)


class PrecompiledObjectFactory(ObjectFactory[T]):
    strategy = FactoryStrategy.PRECOMPILED

    def __init__(self, cls: type[T]):
        super().__init__(cls)
        # type.__call__ runs __new__ and __init__, bound to cls once
        self._constructor: Callable[[], T] = type(cls).__call__.__get__(cls)

    def new_instance(self) -> T:
        try:
            return self._constructor()
        except Exception as exc:
            raise self._creation_failed(exc) from exc


class GenericObjectFactory(ObjectFactory[T]):
    strategy = FactoryStrategy.GENERIC

    def new_instance(self) -> T:
        try:
            bound = inspect.signature(self._cls).bind()
            return self._cls(*bound.args, **bound.kwargs)
        except Exception as exc:
            raise self._creation_failed(exc) from exc

"""Explicit registry of provider methods.

A provider method produces the actual outcome of an interaction without going
through HTTP: the message a provider would publish, or a response value.
Methods are tagged with the interaction description they satisfy and then
registered explicitly (or collected from a module or class):

    @provider_method("an order created event")
    def order_created():
        return ProviderMessage({"id": 10}, {"topic": "orders"})

    registry = ProviderMethodRegistry()
    registry.register_function(order_created)
"""

from __future__ import annotations

import inspect
import logging
import threading
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Callable, Dict, List, Optional

from .body import OptionalBody

logger = logging.getLogger(__name__)

PROVIDER_METHOD_ATTR = "__pact_provider_methods__"

InstanceFactory = Callable[[type], Any]


class ProviderMethodError(RuntimeError):
    """Raised when invoking a provider method fails."""
    pass


def provider_method(description: str) -> Callable[[Callable], Callable]:
    """Tag a function or method as producing the outcome for `description`.

    May be stacked to serve several interactions with one method.
    """
    def decorator(func: Callable) -> Callable:
        tagged = list(getattr(func, PROVIDER_METHOD_ATTR, ()))
        tagged.append(description)
        setattr(func, PROVIDER_METHOD_ATTR, tuple(tagged))
        return func
    return decorator


def to_optional_body(value: Any, content_type: Optional[str] = None) -> OptionalBody:
    """Turn a raw payload (bytes, str, or JSON-serialisable data) into a body."""
    if value is None:
        return OptionalBody.missing()
    if isinstance(value, (bytes, bytearray)):
        return OptionalBody.body(bytes(value), content_type)
    if isinstance(value, str):
        return OptionalBody.body(value, content_type)
    if isinstance(value, (dict, list, int, float, bool)):
        return OptionalBody.json(value, content_type or "application/json")
    raise TypeError(f"Cannot use a {type(value).__name__} as a message payload")


@dataclass(frozen=True)
class ProviderMessage:
    """A message produced by a provider method: contents plus optional metadata."""
    contents: Any
    metadata: Dict[str, Any] = field(default_factory=dict)
    content_type: Optional[str] = None

    def body(self) -> OptionalBody:
        content_type = self.content_type
        if content_type is None:
            for key, value in self.metadata.items():
                if key.lower() in ("contenttype", "content-type") and value:
                    content_type = str(value)
                    break
        return to_optional_body(self.contents, content_type)


@dataclass(frozen=True)
class ProviderMethod:
    """An invokable handle: a plain function, or a function defined on `owner`."""
    description: str
    func: Callable
    owner: Optional[type] = None

    @property
    def name(self) -> str:
        if self.owner is not None:
            return f"{self.owner.__name__}.{self.func.__name__}"
        return getattr(self.func, "__qualname__", repr(self.func))

    def invoke(self, instance_factory: Optional[InstanceFactory] = None) -> Any:
        """Call the method, creating an owner instance first when needed.

        Raises:
            ProviderMethodError: If instantiation or the call itself raises
        """
        try:
            if self.owner is None:
                return self.func()
            factory = instance_factory or (lambda cls: cls())
            return self.func(factory(self.owner))
        except Exception as e:
            raise ProviderMethodError(f"Provider method {self.name} failed: {e}") from e


class ProviderMethodRegistry:
    def __init__(self) -> None:
        self._methods: Dict[str, List[ProviderMethod]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return sum(len(methods) for methods in self._methods.values())

    def register(self, description: str, func: Callable, owner: Optional[type] = None) -> ProviderMethod:
        method = ProviderMethod(description=description, func=func, owner=owner)
        with self._lock:
            self._methods.setdefault(description, []).append(method)
        logger.debug("Registered provider method %s for '%s'", method.name, description)
        return method

    def register_function(self, func: Callable) -> List[ProviderMethod]:
        descriptions = getattr(func, PROVIDER_METHOD_ATTR, ())
        if not descriptions:
            raise ValueError(f"{func!r} is not tagged with @provider_method")
        return [self.register(description, func) for description in descriptions]

    def register_class(self, cls: type) -> List[ProviderMethod]:
        """Register every tagged method defined on cls (and its bases)."""
        registered: List[ProviderMethod] = []
        for klass in reversed(cls.__mro__):
            for attr in vars(klass).values():
                func = attr.__func__ if isinstance(attr, (staticmethod, classmethod)) else attr
                if not callable(func):
                    continue
                for description in getattr(func, PROVIDER_METHOD_ATTR, ()):
                    if isinstance(attr, staticmethod):
                        registered.append(self.register(description, func))
                    elif isinstance(attr, classmethod):
                        registered.append(self.register(description, func.__get__(cls, cls)))
                    else:
                        registered.append(self.register(description, func, owner=cls))
        return registered

    def scan_module(self, module: ModuleType) -> List[ProviderMethod]:
        """Register tagged functions and tagged methods of classes defined in module."""
        registered: List[ProviderMethod] = []
        for _, member in inspect.getmembers(module):
            if getattr(member, "__module__", None) != module.__name__:
                continue
            if inspect.isclass(member):
                registered.extend(self.register_class(member))
            elif inspect.isfunction(member) and getattr(member, PROVIDER_METHOD_ATTR, ()):
                registered.extend(self.register_function(member))
        return registered

    def find(self, description: str) -> List[ProviderMethod]:
        """Methods registered for description, in registration order."""
        with self._lock:
            return list(self._methods.get(description, []))

    def descriptions(self) -> List[str]:
        with self._lock:
            return sorted(self._methods)

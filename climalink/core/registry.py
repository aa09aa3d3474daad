"""Registries mapping names to data supplier and consumer factories."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List

Factory = Callable[..., Any]


@dataclass(slots=True, frozen=True)
class ComponentDefinition:
    """Metadata about a registered supplier or consumer."""

    name: str
    factory: Factory
    description: str
    module: str


class ComponentRegistry:
    """Keeps track of the available suppliers or consumers of one kind."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._components: Dict[str, ComponentDefinition] = {}

    def register(self, name: str, factory: Factory, description: str = "") -> Factory:
        """Register *factory* under *name* and return it for decorator usage."""

        if name in self._components:
            raise ValueError(f"{self.kind.capitalize()} '{name}' is already registered")
        self._components[name] = ComponentDefinition(
            name=name,
            factory=factory,
            description=description,
            module=factory.__module__,
        )
        return factory

    def get(self, name: str) -> ComponentDefinition:
        """Return the definition registered under *name*."""

        try:
            return self._components[name]
        except KeyError as exc:
            raise KeyError(f"{self.kind.capitalize()} '{name}' is not registered") from exc

    def create(self, name: str, *args: Any, **kwargs: Any) -> Any:
        """Build a new instance of the component registered under *name*."""

        return self.get(name).factory(*args, **kwargs)

    def __contains__(self, name: str) -> bool:
        return name in self._components

    def __iter__(self) -> Iterator[ComponentDefinition]:
        return iter(self._components.values())

    def names(self) -> List[str]:
        """Return registered names preserving insertion order."""

        return list(self._components.keys())

    def items(self) -> Iterable[ComponentDefinition]:
        return list(self._components.values())

    def clear(self) -> None:
        self._components.clear()


suppliers = ComponentRegistry("supplier")
consumers = ComponentRegistry("consumer")


def register_supplier(name: str, description: str = "") -> Callable[[Factory], Factory]:
    """Class decorator registering a data supplier."""

    def decorator(factory: Factory) -> Factory:
        factory.registry_key = name
        return suppliers.register(name, factory, description=description)

    return decorator


def register_consumer(name: str, description: str = "") -> Callable[[Factory], Factory]:
    """Class decorator registering a data consumer."""

    def decorator(factory: Factory) -> Factory:
        factory.registry_key = name
        return consumers.register(name, factory, description=description)

    return decorator

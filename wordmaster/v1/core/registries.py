from datetime import date
from typing import Any, Generic, Protocol, TypeVar

T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen outside development"
            )
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen


class Scheduler(Protocol):
    """Protocol for spaced-repetition schedulers."""

    def initialize(self, item_id: int, collection_id: str, today: date) -> Any:
        """Create the first scheduling state for an item."""
        ...

    def transition(self, state: Any, quality: Any, today: date) -> Any:
        """Compute the next scheduling state from a review outcome."""
        ...


class SchedulerRegistry(Registry[Scheduler]):
    """Registry for SRS schedulers (sm2)."""

    def __init__(self):
        super().__init__("Scheduler")


scheduler_registry = SchedulerRegistry()

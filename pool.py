"""
Object pools for transient simulation entities
"""

from typing import Callable, Generic, List, Protocol, TypeVar, runtime_checkable


@runtime_checkable
class Resettable(Protocol):
    """Anything a pool can recycle: reset() clears it back to defaults."""

    def reset(self) -> None:
        ...


T = TypeVar("T", bound=Resettable)


class ObjectPool(Generic[T]):
    """Free list of retired instances; acquire() prefers reuse over the factory."""

    def __init__(self, factory: Callable[[], T]):
        self._factory = factory
        self._free: List[T] = []

    def __len__(self) -> int:
        return len(self._free)

    def acquire(self) -> T:
        if self._free:
            return self._free.pop()
        return self._factory()

    def release(self, obj: T) -> None:
        """Reset ``obj`` (releasing anything it owns) and park it for reuse."""
        if not isinstance(obj, Resettable):
            raise TypeError(f"{type(obj).__name__} cannot be pooled without reset()")
        obj.reset()
        self._free.append(obj)

    def clear(self) -> None:
        # Dropped instances are not reset; they just go out of scope.
        self._free.clear()

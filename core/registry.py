from typing import Any, Callable, Dict, Iterator, List, Type, TypeVar

T = TypeVar("T")


class Registry:
    """
    Maps short names (as used in config files) to implementation classes.

    Classes register themselves at import time with the `register` decorator,
    so a module must be imported before its names resolve.
    """

    def __init__(self, kind: str):
        self._kind = kind
        self._entries: Dict[str, Type[Any]] = {}

    def register(self, name: str) -> Callable[[Type[T]], Type[T]]:
        """
        Class decorator binding `name` to the decorated class.

        Raises:
            ValueError: If `name` is already taken.
        """
        def decorator(cls: Type[T]) -> Type[T]:
            if name in self._entries:
                existing = self._entries[name].__name__
                raise ValueError(f"{self._kind} '{name}' is already bound to {existing}.")
            self._entries[name] = cls
            return cls
        return decorator

    def get(self, name: str) -> Type[Any]:
        """
        Raises:
            KeyError: If nothing is registered under `name`.
        """
        try:
            return self._entries[name]
        except KeyError:
            raise KeyError(f"No {self._kind} named '{name}'; known: {self.names()}") from None

    def create(self, name: str, *args: Any, **kwargs: Any) -> Any:
        return self.get(name)(*args, **kwargs)

    def names(self) -> List[str]:
        return sorted(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)


provider_registry = Registry("provider")

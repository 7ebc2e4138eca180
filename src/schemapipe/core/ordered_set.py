"""Partially ordered set of transforms.

Items are yielded in an order consistent with every declared dependency. When several
items are ready at once, registration order decides, so two sets built with the same
calls always iterate identically.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator

from schemapipe.core.errors import (
    CircularDependencyError,
    DependencyNotFoundError,
    OrderedSetLockedError,
)


@dataclass
class _Entry:
    name: str
    item: Any
    dependencies: list[str] = field(default_factory=list)


def _default_name(item: Any) -> str:
    return getattr(item, "__name__", None) or repr(item)


class PartiallyOrderedSet:
    """Stores items with 'must run after' edges and iterates them topologically"""

    def __init__(self):
        self._entries: dict[str, _Entry] = {}
        self._names: dict[Any, str] = {}
        # Names given to items used as dependencies before being added
        self._reserved: dict[Any, str] = {}
        self._iterating = 0

    def add(self, item: Any, dependencies: Iterable[Any] | None = None,
            name: str | None = None) -> "PartiallyOrderedSet":
        """Register an item.

        Args:
            item: The item to store (usually a visitor function)
            dependencies: Items or item names that must come before this one.
                They may be added before or after this call.
            name: Name other items can depend on. Defaults to ``item.__name__``.

        Raises:
            OrderedSetLockedError: If called while the set is being iterated
            CircularDependencyError: If the new edges close a cycle. The set is
                left unchanged.
        """
        if self._iterating:
            raise OrderedSetLockedError(
                f"Cannot add '{name or _default_name(item)}' while iterating"
            )

        snapshot = (dict(self._entries), dict(self._names), dict(self._reserved))

        try:
            key = self._names.get(item)
            if key is None:
                key = self._reserved.pop(item, None)
                if key is None:
                    key = self._unique_name(name or _default_name(item), explicit=name is not None)
                elif name is not None and name != key:
                    self._rename(key, self._unique_name(name, explicit=True))
                    key = name
            self._names[item] = key
            deps = [self._key_of(dep) for dep in (dependencies or [])]
            self._entries[key] = _Entry(key, item, deps)

            cycle = self._find_cycle()
            if cycle:
                raise CircularDependencyError(cycle)
        except (CircularDependencyError, ValueError):
            self._entries, self._names, self._reserved = snapshot
            raise
        return self

    def for_each(self, callback: Callable[[Any], Any]) -> None:
        """Call callback on every item in dependency order"""
        for item in self:
            callback(item)

    def ordered(self) -> list[Any]:
        """Snapshot of the items in dependency order"""
        return [entry.item for entry in self._sorted()]

    def names(self) -> list[str]:
        """Item names in dependency order"""
        return [entry.name for entry in self._sorted()]

    def __iter__(self) -> Iterator[Any]:
        entries = self._sorted()
        self._iterating += 1
        try:
            for entry in entries:
                yield entry.item
        finally:
            self._iterating -= 1

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, ref: Any) -> bool:
        if isinstance(ref, str):
            return ref in self._entries
        try:
            return ref in self._names
        except TypeError:
            return False

    def __repr__(self) -> str:
        return f"PartiallyOrderedSet({list(self._entries)})"

    def _key_of(self, ref: Any) -> str:
        if isinstance(ref, str):
            return ref
        key = self._names.get(ref) or self._reserved.get(ref)
        if key is None:
            key = self._reserved[ref] = self._unique_name(_default_name(ref), explicit=False)
        return key

    def _unique_name(self, name: str, explicit: bool) -> str:
        if explicit and name not in self._entries:
            self._release(name)
        taken = set(self._entries) | set(self._reserved.values())
        if name not in taken:
            return name
        if explicit:
            raise ValueError(f"An item named '{name}' is already registered")
        index = 2
        while f"{name}#{index}" in taken:
            index += 1
        return f"{name}#{index}"

    def _release(self, name: str) -> None:
        """Move a reservation off a name an item is being added under explicitly"""
        for ref, reserved in self._reserved.items():
            if reserved == name:
                moved = self._unique_name(name, explicit=False)
                self._reserved[ref] = moved
                self._rename(name, moved)
                return

    def _rename(self, old: str, new: str) -> None:
        """Point dependencies on a reserved name at the name the item was added under"""
        for name, entry in self._entries.items():
            if old in entry.dependencies:
                deps = [new if dep == old else dep for dep in entry.dependencies]
                self._entries[name] = _Entry(entry.name, entry.item, deps)

    def _find_cycle(self) -> list[str] | None:
        """Depth-first search over known edges; returns the cycle path if any"""
        visiting: list[str] = []
        done: set[str] = set()

        def walk(name: str) -> list[str] | None:
            if name in done:
                return None
            if name in visiting:
                return visiting[visiting.index(name):] + [name]
            visiting.append(name)
            for dep in self._entries[name].dependencies:
                if dep in self._entries:
                    cycle = walk(dep)
                    if cycle:
                        return cycle
            visiting.pop()
            done.add(name)
            return None

        for name in self._entries:
            cycle = walk(name)
            if cycle:
                return cycle
        return None

    def _sorted(self) -> list[_Entry]:
        for entry in self._entries.values():
            for dep in entry.dependencies:
                if dep not in self._entries:
                    raise DependencyNotFoundError(entry.name, dep)

        emitted: set[str] = set()
        result: list[_Entry] = []
        pending = list(self._entries.values())
        while pending:
            for index, entry in enumerate(pending):
                if all(dep in emitted for dep in entry.dependencies):
                    break
            else:
                raise CircularDependencyError(
                    self._find_cycle() or [entry.name for entry in pending]
                )
            pending.pop(index)
            emitted.add(entry.name)
            result.append(entry)
        return result

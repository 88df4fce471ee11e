"""Build-engine collaborator.

IssueLink never runs builds; it only needs a view of one. ``Build`` is the
protocol the rest of the package codes against and ``BuildRecord`` is a plain
in-memory implementation used by the CLI, by embedders that do not have a
richer build object, and by the tests.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from .models import ChangeEntry, DependencyChange, Outcome, ParameterValue

if TYPE_CHECKING:
    from .browsers import RepositoryBrowser

T = TypeVar("T")


class BuildStateError(RuntimeError):
    """Raised when write-once build state is written twice."""


class Build(Protocol):
    display_name: str
    url: str
    outcome: Outcome
    change_set: Sequence[ChangeEntry]
    parameters: Sequence[ParameterValue]
    environment: Mapping[str, str]
    is_matrix_run: bool
    repository_browser: RepositoryBrowser | None

    @property
    def previous_build(self) -> Build | None: ...

    def set_outcome(self, outcome: Outcome) -> None: ...

    def get_dependency_changes(self, previous: Build | None) -> Sequence[DependencyChange]: ...

    def build_variables(self) -> dict[str, str]: ...

    def get_attached(self, kind: type[T]) -> T | None: ...

    def attach(self, value: Any) -> None: ...


@dataclass
class BuildRecord:
    display_name: str
    url: str = ""
    outcome: Outcome = Outcome.SUCCESS
    change_set: Sequence[ChangeEntry] = ()
    parameters: Sequence[ParameterValue] = ()
    environment: Mapping[str, str] = field(default_factory=dict)
    previous: BuildRecord | None = None
    dependency_changes: Sequence[DependencyChange] = ()
    is_matrix_run: bool = False
    repository_browser: RepositoryBrowser | None = None
    _attached: dict[type, Any] = field(default_factory=dict, init=False, repr=False)

    @property
    def previous_build(self) -> BuildRecord | None:
        return self.previous

    def set_outcome(self, outcome: Outcome) -> None:
        """Record ``outcome``; an outcome can only get worse, never better."""
        self.outcome = self.outcome.worst(outcome)

    def get_dependency_changes(self, previous: Build | None) -> Sequence[DependencyChange]:
        # The engine hands over ranges already computed against the previous build.
        return list(self.dependency_changes)

    def build_variables(self) -> dict[str, str]:
        return {p.name: "" if p.value is None else str(p.value) for p in self.parameters}

    def get_attached(self, kind: type[T]) -> T | None:
        value = self._attached.get(kind)
        return value if isinstance(value, kind) else None

    def attach(self, value: Any) -> None:
        kind = type(value)
        if kind in self._attached:
            raise BuildStateError(f"{kind.__name__} already attached to {self.display_name}")
        self._attached[kind] = value

    def __str__(self) -> str:
        return self.display_name


__all__ = ["Build", "BuildRecord", "BuildStateError"]

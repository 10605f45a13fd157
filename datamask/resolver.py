"""Dual-namespace name resolution.

An unqualified identifier is looked up in the dataset namespace first and in
the scope namespace second, so a column silently shadows a scope value of the
same name. A namespace tag restricts the lookup to exactly one namespace.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Set, Union

from datamask.errors import AmbiguousNameError, NameNotFoundError
from datamask.namespaces import Namespace

logger = logging.getLogger(__name__)

NamespaceTag = Union[Namespace, str, None]

SHADOW_POLICIES = ("ignore", "warn", "error")


def resolve(
    identifier: str,
    dataset: Mapping[str, Any],
    scope: Mapping[str, Any],
    tag: NamespaceTag = None,
) -> Any:
    """Resolve ``identifier`` against the dataset and scope namespaces."""
    namespace = Namespace.parse(tag)
    if namespace is Namespace.DATASET:
        if identifier in dataset:
            return dataset[identifier]
        raise NameNotFoundError(identifier, (Namespace.DATASET,))
    if namespace is Namespace.SCOPE:
        if identifier in scope:
            return scope[identifier]
        raise NameNotFoundError(identifier, (Namespace.SCOPE,))
    if identifier in dataset:
        return dataset[identifier]
    if identifier in scope:
        return scope[identifier]
    raise NameNotFoundError(identifier, (Namespace.DATASET, Namespace.SCOPE))


def resolve_indirect(
    column_name_variable: str,
    dataset: Mapping[str, Any],
    scope: Mapping[str, Any],
    tag: NamespaceTag = Namespace.SCOPE,
) -> Any:
    """Resolve a variable holding a column name, then fetch that column."""
    key = resolve(column_name_variable, dataset, scope, tag)
    return lookup_column(key, dataset)


def lookup_column(key: Any, dataset: Mapping[str, Any]) -> Any:
    # Non-string keys can never name a column; reject them rather than default.
    if not isinstance(key, str) or key not in dataset:
        raise NameNotFoundError(key, (Namespace.DATASET,))
    return dataset[key]


class NameResolver:
    """Resolver bound to one dataset namespace and one scope namespace."""

    def __init__(
        self,
        dataset: Mapping[str, Any],
        scope: Mapping[str, Any],
        *,
        on_shadow: str = "ignore",
        data_pronoun: str = "_data",
        env_pronoun: str = "_env",
        warned: Optional[Set[str]] = None,
    ) -> None:
        if on_shadow not in SHADOW_POLICIES:
            raise ValueError(f"on_shadow must be one of {', '.join(SHADOW_POLICIES)}")
        self.dataset = dataset
        self.scope = scope
        self.on_shadow = on_shadow
        self._data_pronoun = data_pronoun
        self._env_pronoun = env_pronoun
        # Names already warned about; frame backends share one set per operation.
        self._warned: Set[str] = warned if warned is not None else set()

    def is_shadowed(self, identifier: str) -> bool:
        return identifier in self.dataset and identifier in self.scope

    def shadowed_names(self) -> List[str]:
        return sorted(name for name in self.scope if name in self.dataset)

    def resolve(self, identifier: str, tag: NamespaceTag = None) -> Any:
        namespace = Namespace.parse(tag)
        if namespace is None and self.is_shadowed(identifier):
            self._handle_shadow(identifier)
        value = resolve(identifier, self.dataset, self.scope, namespace)
        logger.debug("Resolved %r (tag=%s)", identifier, namespace.value if namespace else "none")
        return value

    def resolve_indirect(self, column_name_variable: str, tag: NamespaceTag = Namespace.SCOPE) -> Any:
        key = self.resolve(column_name_variable, tag)
        return self.lookup_column(key)

    def lookup_column(self, key: Any) -> Any:
        return lookup_column(key, self.dataset)

    def _handle_shadow(self, identifier: str) -> None:
        if self.on_shadow == "error":
            raise AmbiguousNameError(
                identifier,
                data_pronoun=self._data_pronoun,
                env_pronoun=self._env_pronoun,
            )
        if self.on_shadow == "warn" and identifier not in self._warned:
            self._warned.add(identifier)
            logger.warning(
                "Column %r shadows the scope value of the same name; use %s.%s or %s.%s",
                identifier,
                self._data_pronoun,
                identifier,
                self._env_pronoun,
                identifier,
            )


__all__ = [
    "NamespaceTag",
    "SHADOW_POLICIES",
    "resolve",
    "resolve_indirect",
    "lookup_column",
    "NameResolver",
]

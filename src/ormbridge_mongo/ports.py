"""Protocols the connector depends on but does not implement."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .schema import ModelDescriptor


@runtime_checkable
class IModelRegistry(Protocol):
    """Lookup of model descriptors by name."""

    def get(self, name: str) -> ModelDescriptor: ...

    def __contains__(self, name: object) -> bool: ...


@runtime_checkable
class IIncludeResolver(Protocol):
    """
    Resolves relation ``include`` filters for fetched documents.

    Relation traversal belongs to the model framework; the connector hands
    over the documents it fetched and returns what the resolver returns.
    """

    async def include(
        self,
        model: str,
        documents: list[dict[str, Any]],
        include: Any,
        options: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]: ...

"""Client-side annotation store.

The store keeps the in-memory copy of the symbol's drawings that the
renderer and hit-tester read. Every mutation goes through the backend
first; the local copy only changes once the backend has confirmed, so a
failed request leaves the store exactly as it was and the error reaches
the caller.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from replay.exceptions import AnnotationNotFound
from replay.logging import get_logger
from replay.models import Annotation, AnnotationType, DrawingPoint, validate_points
from replay.overlay.styles import default_style

logger = get_logger(__name__)


class AnnotationBackend(ABC):
    """Persistence collaborator for drawings."""

    @abstractmethod
    async def list_annotations(self, symbol: str) -> list[Annotation]: ...

    @abstractmethod
    async def create_annotation(
        self,
        symbol: str,
        annotation_type: AnnotationType,
        points: Sequence[DrawingPoint],
        style: dict[str, Any],
    ) -> Annotation: ...

    @abstractmethod
    async def update_annotation(
        self,
        annotation_id: int,
        points: Sequence[DrawingPoint] | None = None,
        style: dict[str, Any] | None = None,
    ) -> Annotation: ...

    @abstractmethod
    async def delete_annotation(self, annotation_id: int) -> None: ...


class AnnotationStore:
    """Authoritative local copy of one symbol's annotations, in creation order.

    Args:
        backend: Persistence collaborator every mutation is mirrored to.
        symbol: Symbol the drawings belong to.
    """

    def __init__(self, backend: AnnotationBackend, symbol: str) -> None:
        self._backend = backend
        self._symbol = symbol
        self._annotations: list[Annotation] = []

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def annotations(self) -> tuple[Annotation, ...]:
        return tuple(self._annotations)

    def get(self, annotation_id: int | None) -> Annotation | None:
        if annotation_id is None:
            return None
        for annotation in self._annotations:
            if annotation.id == annotation_id:
                return annotation
        return None

    def __contains__(self, annotation_id: object) -> bool:
        return any(a.id == annotation_id for a in self._annotations)

    def __len__(self) -> int:
        return len(self._annotations)

    async def load(self) -> tuple[Annotation, ...]:
        """Replace the local copy with the backend's list."""
        self._annotations = list(await self._backend.list_annotations(self._symbol))
        logger.debug("annotations_loaded", symbol=self._symbol, count=len(self._annotations))
        return self.annotations

    async def create(
        self,
        annotation_type: AnnotationType,
        points: Sequence[DrawingPoint],
        style: dict[str, Any] | None = None,
    ) -> Annotation:
        """Persist a new drawing with the type's default style merged under ``style``."""
        checked = validate_points(annotation_type, list(points))
        merged = {**default_style(annotation_type), **(style or {})}
        created = await self._backend.create_annotation(self._symbol, annotation_type, checked, merged)
        self._annotations.append(created)
        logger.info("annotation_created", id=created.id, type=created.type.value)
        return created

    async def patch_style(self, annotation_id: int, partial: dict[str, Any]) -> Annotation:
        """Merge ``partial`` into the drawing's style."""
        current = self._require(annotation_id)
        merged = {**current.style, **partial}
        updated = await self._backend.update_annotation(annotation_id, style=merged)
        self._replace(updated)
        return updated

    async def patch_points(self, annotation_id: int, points: Sequence[DrawingPoint]) -> Annotation:
        """Replace a drawing's points, keeping its id and type."""
        current = self._require(annotation_id)
        checked = validate_points(current.type, list(points))
        updated = await self._backend.update_annotation(annotation_id, points=checked)
        self._replace(updated)
        return updated

    async def delete(self, annotation_id: int) -> None:
        await self._backend.delete_annotation(annotation_id)
        self._annotations = [a for a in self._annotations if a.id != annotation_id]
        logger.info("annotation_deleted", id=annotation_id)

    def _require(self, annotation_id: int) -> Annotation:
        annotation = self.get(annotation_id)
        if annotation is None:
            raise AnnotationNotFound(annotation_id)
        return annotation

    def _replace(self, updated: Annotation) -> None:
        self._annotations = [updated if a.id == updated.id else a for a in self._annotations]


def prune_selection(store: AnnotationStore, selected_id: int | None) -> int | None:
    """Selected id if it still names a stored annotation, else None."""
    if selected_id is not None and selected_id not in store:
        return None
    return selected_id

"""Drawn annotations scoped to a single asset version."""

from __future__ import annotations

from numbers import Real
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models
from ..errors import NotFound, ValidationError

# purpose: validate shape geometry and media positioning for version-scoped annotations
# status: active

TIME_BASED_MEDIA = frozenset({"video", "audio"})

# shape -> (minimum points, maximum points or None for unbounded)
SHAPE_ARITY: dict[str, tuple[int, int | None]] = {
    "pin": (1, 1),
    "rectangle": (2, 2),
    "arrow": (2, 2),
    "freehand": (2, None),
}


def _normalise_points(shape: str, points: Iterable[Sequence[float]] | None) -> list[list[float]]:
    if shape not in SHAPE_ARITY:
        raise ValidationError(f"Unknown annotation shape: {shape}")
    normalised: list[list[float]] = []
    for pair in points or []:
        if len(pair) != 2 or not all(isinstance(v, Real) and not isinstance(v, bool) for v in pair):
            raise ValidationError("Each point must be an [x, y] pair of numbers")
        normalised.append([float(pair[0]), float(pair[1])])
    minimum, maximum = SHAPE_ARITY[shape]
    if len(normalised) < minimum or (maximum is not None and len(normalised) > maximum):
        expected = f"{minimum}" if minimum == maximum else f"at least {minimum}"
        raise ValidationError(f"A {shape} needs {expected} point(s)")
    return normalised


def _check_position(media_type: str, timecode_seconds: float | None, page_number: int | None) -> None:
    if media_type in TIME_BASED_MEDIA:
        if timecode_seconds is None:
            raise ValidationError("timecode_seconds is required for time-based media")
        if timecode_seconds < 0:
            raise ValidationError("timecode_seconds must be zero or positive")
        return
    if timecode_seconds is not None:
        raise ValidationError("timecode_seconds is only valid for video or audio")
    if page_number is not None and page_number < 1:
        raise ValidationError("page_number starts at 1")


def get_annotation(db: Session, annotation_id: UUID) -> models.Annotation:
    annotation = db.get(models.Annotation, annotation_id)
    if annotation is None:
        raise NotFound("Annotation not found")
    return annotation


def create_annotation(
    db: Session,
    version_id: UUID,
    shape: str,
    points: Iterable[Sequence[float]],
    radius: float | None = None,
    stroke_width: float | None = None,
    color: str | None = None,
    opacity: float | None = None,
    timecode_seconds: float | None = None,
    page_number: int | None = None,
    comment_id: UUID | None = None,
    created_by: UUID | None = None,
) -> models.Annotation:
    version = db.get(models.Version, version_id)
    if version is None:
        raise NotFound("Version not found")
    normalised = _normalise_points(shape, points)
    _check_position(version.asset.media_type, timecode_seconds, page_number)
    if opacity is not None and not 0 <= opacity <= 1:
        raise ValidationError("opacity must be between 0 and 1")
    if radius is not None and radius < 0:
        raise ValidationError("radius must be positive")
    if stroke_width is not None and stroke_width <= 0:
        raise ValidationError("stroke_width must be positive")
    if comment_id is not None:
        comment = db.get(models.Comment, comment_id)
        if comment is None or comment.asset_id != version.asset_id:
            raise ValidationError("Comment must belong to the annotated asset")

    annotation = models.Annotation(
        version_id=version.id,
        comment_id=comment_id,
        shape=shape,
        points=normalised,
        radius=radius,
        stroke_width=stroke_width,
        color=color,
        opacity=opacity,
        timecode_seconds=timecode_seconds,
        page_number=page_number,
        created_by=created_by,
    )
    db.add(annotation)
    db.commit()
    db.refresh(annotation)
    return annotation


def move_annotation(db: Session, annotation_id: UUID, points: Iterable[Sequence[float]]) -> models.Annotation:
    """Replace the geometry of an annotation. Shape and styling stay as created."""

    annotation = get_annotation(db, annotation_id)
    annotation.points = _normalise_points(annotation.shape, points)
    db.commit()
    db.refresh(annotation)
    return annotation


def delete_annotation(db: Session, annotation_id: UUID) -> None:
    annotation = get_annotation(db, annotation_id)
    db.delete(annotation)
    db.commit()


def list_annotations(db: Session, version_id: UUID) -> list[models.Annotation]:
    return (
        db.query(models.Annotation)
        .filter(models.Annotation.version_id == version_id)
        .order_by(models.Annotation.created_at.asc())
        .all()
    )

# ===============================
# FILE: src/place_sdk/core/errors.py
# ===============================
from __future__ import annotations

from place_sdk.core.message_types import UnrecoverableKind


class PlaceError(Exception):
    """Base class for conditions that abort a place attempt outright."""
    kind: UnrecoverableKind = UnrecoverableKind.INTERNAL_INCONSISTENCY


class FrameUnavailable(PlaceError):
    kind = UnrecoverableKind.FRAME_UNAVAILABLE


class TransformFailure(PlaceError):
    kind = UnrecoverableKind.TRANSFORM_FAILURE


class InternalInconsistency(PlaceError):
    kind = UnrecoverableKind.INTERNAL_INCONSISTENCY

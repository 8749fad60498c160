# ====================================
# FILE: src/place_sdk/core/constraints.py
# ====================================
from __future__ import annotations

from place_sdk.core.message_types import Constraints


def constraints_understandable(c: Constraints) -> bool:
    """
    Only two shapes are supported: no constraints at all, or a single
    orientation constraint with nothing else.
    """
    others_empty = not (c.position_constraints or c.joint_constraints or c.visibility_constraints)
    if not others_empty:
        return False
    return len(c.orientation_constraints) <= 1


def use_path_constraints(c: Constraints) -> bool:
    """True when a constrained pre-place move should be attempted."""
    return constraints_understandable(c) and bool(c.orientation_constraints)

# =========================================
# FILE: src/place_sdk/core/collision_policy.py
# =========================================
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List

from place_sdk.core.config import HandDescription
from place_sdk.core.message_types import (
    COLLISION_SET_ALL,
    CollisionOperation,
    CollisionOperationType,
    LinkPadding,
    PlaceGoal,
)


@dataclass
class CollisionPolicy:
    """Ordered exclusions + padding handed to the kinematics/motion services."""
    collision_operations: List[CollisionOperation] = field(default_factory=list)
    link_padding: List[LinkPadding] = field(default_factory=list)


def _disable(a: str, b: str) -> CollisionOperation:
    return CollisionOperation(object1=a, object2=b, operation=CollisionOperationType.DISABLE)


def gripper_padding(hand: HandDescription, padding: float) -> List[LinkPadding]:
    return [LinkPadding(link_name=l, padding=float(padding)) for l in hand.gripper_links]


class CollisionPolicyBuilder:
    """
    Builds the per-phase collision policies for one arm.

    Caller overrides (goal.additional_*) always go after the built-in entries;
    the services apply the list in order, so the last entry for a pair wins.
    """

    def __init__(self, hand: HandDescription):
        self.hand = hand

    def default(self, goal: PlaceGoal) -> CollisionPolicy:
        """Caller overrides only; no placement relaxations."""
        return CollisionPolicy(
            collision_operations=list(goal.additional_collision_operations),
            link_padding=list(goal.additional_link_padding),
        )

    def descent(self, goal: PlaceGoal) -> CollisionPolicy:
        ops: List[CollisionOperation] = []
        if goal.collision_object_name and goal.collision_support_surface_name:
            ops.append(_disable(goal.collision_object_name, goal.collision_support_surface_name))
        if goal.allow_gripper_support_collision:
            ops.append(_disable(self.hand.gripper_collision_name, goal.collision_support_surface_name))
        ops.extend(goal.additional_collision_operations)

        padding = gripper_padding(self.hand, 0.0)
        # the object is still attached to the gripper on the way down
        padding.append(LinkPadding(link_name=self.hand.attached_link_name, padding=float(goal.place_padding)))
        padding.extend(goal.additional_link_padding)
        return CollisionPolicy(collision_operations=ops, link_padding=padding)

    def retreat_search(self, goal: PlaceGoal) -> CollisionPolicy:
        """Policy used while searching the retreat leg, before anything has moved."""
        ops: List[CollisionOperation] = []
        if goal.collision_object_name:
            ops.append(_disable(goal.collision_object_name, COLLISION_SET_ALL))
        if goal.allow_gripper_support_collision:
            ops.append(_disable(self.hand.gripper_collision_name, goal.collision_support_surface_name))
        ops.extend(goal.additional_collision_operations)
        return CollisionPolicy(collision_operations=ops, link_padding=self.descent(goal).link_padding)

    def retreat(self, goal: PlaceGoal) -> CollisionPolicy:
        """Policy for the retreat executed after release."""
        ops: List[CollisionOperation] = []
        if goal.collision_object_name:
            ops.append(_disable(self.hand.gripper_collision_name, goal.collision_object_name))
        if goal.collision_support_surface_name:
            ops.append(_disable(self.hand.gripper_collision_name, goal.collision_support_surface_name))
        ops.extend(goal.additional_collision_operations)

        padding = gripper_padding(self.hand, 0.0)
        padding.extend(goal.additional_link_padding)
        return CollisionPolicy(collision_operations=ops, link_padding=padding)

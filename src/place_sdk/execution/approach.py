# =========================================
# FILE: src/place_sdk/execution/approach.py
# =========================================
from __future__ import annotations
import logging
from enum import Enum
from typing import Protocol, runtime_checkable, Optional

from place_sdk.core.config import PlaceConfig
from place_sdk.core.message_types import PlaceGoal, PlaceLocation, ReactivePlaceGoal
from place_sdk.core.robot_io import MotionExecutionService, ReactivePlacementService
from place_sdk.execution.negotiator import PlaceAttempt, TrajectoryNegotiator

logger = logging.getLogger(__name__)


class ApproachOutcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"   # completion status unknown


@runtime_checkable
class PlaceApproachStrategy(Protocol):
    def approach(self, goal: PlaceGoal, location: PlaceLocation, attempt: PlaceAttempt) -> ApproachOutcome: ...


class ScriptedApproach:
    """Replay the precomputed pre-place -> place trajectory."""

    def __init__(self, motion: MotionExecutionService):
        self.motion = motion

    def approach(self, goal: PlaceGoal, location: PlaceLocation, attempt: PlaceAttempt) -> ApproachOutcome:
        if not self.motion.execute_trajectory(goal.arm_name, attempt.place_trajectory):
            return ApproachOutcome.FAILED
        return ApproachOutcome.SUCCEEDED


class ReactiveApproach:
    """Hand the last stretch to a closed-loop placement service."""

    def __init__(
        self,
        reactive: ReactivePlacementService,
        negotiator: TrajectoryNegotiator,
        *,
        timeout_s: float = 60.0,
    ):
        self.reactive = reactive
        self.negotiator = negotiator
        self.timeout_s = float(timeout_s)

    def approach(self, goal: PlaceGoal, location: PlaceLocation, attempt: PlaceAttempt) -> ApproachOutcome:
        final_pose = self.negotiator.gripper_pose(goal, location)
        reactive_goal = ReactivePlaceGoal(
            arm_name=goal.arm_name,
            collision_object_name=goal.collision_object_name,
            collision_support_surface_name=goal.collision_support_surface_name,
            trajectory=attempt.place_trajectory,
            final_place_pose=final_pose,
        )
        logger.debug("[place] calling the reactive place action")
        self.reactive.send_goal(reactive_goal)
        if not self.reactive.wait_for_result(self.timeout_s):
            logger.error("[place] reactive place timed out after %.1f s", self.timeout_s)
            return ApproachOutcome.TIMED_OUT
        result = self.reactive.get_result()
        if not result.success:
            logger.error("[place] reactive place failed with error code %d", result.error_code)
            return ApproachOutcome.FAILED
        logger.debug("[place] reactive place action succeeded")
        return ApproachOutcome.SUCCEEDED


def build_approach_strategy(
    config: PlaceConfig,
    *,
    motion: MotionExecutionService,
    negotiator: TrajectoryNegotiator,
    reactive: Optional[ReactivePlacementService] = None,
) -> PlaceApproachStrategy:
    if config.approach == "scripted":
        return ScriptedApproach(motion)
    if config.approach == "reactive":
        if reactive is None:
            raise ValueError("Reactive approach selected but no reactive placement service given")
        return ReactiveApproach(reactive, negotiator, timeout_s=config.reactive_timeout_s)
    raise ValueError(f"Unknown approach '{config.approach}'")

# =====================================
# FILE: src/place_sdk/core/message_types.py
# =====================================
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


COLLISION_SET_ALL = "all"


@dataclass
class Pose:
    """Position in meters, orientation as quaternion (qx, qy, qz, qw)."""
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    orientation: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Pose":
        p = d.get("position", [0.0, 0.0, 0.0]) or [0.0, 0.0, 0.0]
        q = d.get("orientation", [0.0, 0.0, 0.0, 1.0]) or [0.0, 0.0, 0.0, 1.0]
        return cls(position=tuple(float(v) for v in p), orientation=tuple(float(v) for v in q))


@dataclass
class PoseStamped:
    pose: Pose
    frame_id: str
    stamp: float = 0.0  # epoch seconds, metadata only

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PoseStamped":
        return cls(
            pose=Pose.from_dict(d.get("pose", {}) or {}),
            frame_id=str(d.get("frame_id", "")),
            stamp=float(d.get("stamp", 0.0)),
        )


# A place location is just a stamped target pose for the object.
PlaceLocation = PoseStamped


@dataclass
class Vector3Stamped:
    vector: Tuple[float, float, float]
    frame_id: str = ""

    def negated(self) -> "Vector3Stamped":
        x, y, z = self.vector
        return Vector3Stamped(vector=(-x, -y, -z), frame_id=self.frame_id)


@dataclass
class HandPosture:
    names: List[str] = field(default_factory=list)
    positions: List[float] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "HandPosture":
        # extra keys (velocities, efforts) are ignored
        return cls(
            names=[str(n) for n in d.get("names", []) or []],
            positions=[float(v) for v in d.get("positions", []) or []],
        )


@dataclass
class Grasp:
    grasp_pose: Pose = field(default_factory=Pose)  # gripper pose relative to the object
    pre_grasp_posture: HandPosture = field(default_factory=HandPosture)
    grasp_posture: HandPosture = field(default_factory=HandPosture)


@dataclass
class GripperTranslation:
    direction: Vector3Stamped
    desired_distance: float
    min_distance: float


class CollisionOperationType(Enum):
    DISABLE = 0
    ENABLE = 1


@dataclass
class CollisionOperation:
    object1: str
    object2: str
    operation: CollisionOperationType = CollisionOperationType.DISABLE


@dataclass
class LinkPadding:
    link_name: str
    padding: float


def padding_map(link_padding: List[LinkPadding]) -> Dict[str, float]:
    """Interpret an ordered padding list as a mapping; the last entry per link wins."""
    return {lp.link_name: lp.padding for lp in link_padding}


@dataclass
class Constraints:
    position_constraints: List[Any] = field(default_factory=list)
    orientation_constraints: List[Any] = field(default_factory=list)
    joint_constraints: List[Any] = field(default_factory=list)
    visibility_constraints: List[Any] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.position_constraints or self.orientation_constraints
                    or self.joint_constraints or self.visibility_constraints)


@dataclass
class JointTrajectory:
    """Ordered joint-space waypoints."""
    joint_names: List[str] = field(default_factory=list)
    points: List[List[float]] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.points

    def first(self) -> List[float]:
        return list(self.points[0])

    def last(self) -> List[float]:
        return list(self.points[-1])


class ErrorCause(Enum):
    OK = "ok"
    COLLISION = "collision"
    JOINT_LIMIT = "joint_limit"
    OTHER = "other"


@dataclass
class InterpolatedPath:
    """Outcome of one interpolated-path search."""
    trajectory: JointTrajectory
    achieved_distance: float
    cause: ErrorCause = ErrorCause.OK


class GraspIntent(Enum):
    GRASP = "grasp"
    RELEASE = "release"


@dataclass
class PlaceGoal:
    arm_name: str
    grasp: Grasp
    approach: GripperTranslation
    desired_retreat_distance: float
    min_retreat_distance: float
    collision_object_name: str = ""
    collision_support_surface_name: str = ""
    place_padding: float = 0.0
    additional_collision_operations: List[CollisionOperation] = field(default_factory=list)
    additional_link_padding: List[LinkPadding] = field(default_factory=list)
    path_constraints: Constraints = field(default_factory=Constraints)
    allow_gripper_support_collision: bool = False
    only_perform_feasibility_test: bool = False

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "PlaceGoal":
        """Lenient conversion from dict (YAML/JSON goal payloads)."""
        g = payload.get("grasp", {}) or {}
        grasp = Grasp(
            grasp_pose=Pose.from_dict(g.get("grasp_pose", {}) or {}),
            pre_grasp_posture=HandPosture.from_dict(g.get("pre_grasp_posture", {}) or {}),
            grasp_posture=HandPosture.from_dict(g.get("grasp_posture", {}) or {}),
        )
        a = payload.get("approach", {}) or {}
        d = a.get("direction", {}) or {}
        approach = GripperTranslation(
            direction=Vector3Stamped(
                vector=tuple(float(v) for v in d.get("vector", [0.0, 0.0, -1.0])),
                frame_id=str(d.get("frame_id", "")),
            ),
            desired_distance=float(a.get("desired_distance", 0.0)),
            min_distance=float(a.get("min_distance", 0.0)),
        )
        ops = [
            CollisionOperation(
                object1=str(o["object1"]),
                object2=str(o["object2"]),
                operation=CollisionOperationType[str(o.get("operation", "DISABLE")).upper()],
            )
            for o in payload.get("additional_collision_operations", []) or []
        ]
        pads = [
            LinkPadding(link_name=str(p["link_name"]), padding=float(p.get("padding", 0.0)))
            for p in payload.get("additional_link_padding", []) or []
        ]
        c = payload.get("path_constraints", {}) or {}
        constraints = Constraints(
            position_constraints=list(c.get("position_constraints", []) or []),
            orientation_constraints=list(c.get("orientation_constraints", []) or []),
            joint_constraints=list(c.get("joint_constraints", []) or []),
            visibility_constraints=list(c.get("visibility_constraints", []) or []),
        )
        return cls(
            arm_name=str(payload.get("arm_name", "")),
            grasp=grasp,
            approach=approach,
            desired_retreat_distance=float(payload.get("desired_retreat_distance", 0.0)),
            min_retreat_distance=float(payload.get("min_retreat_distance", 0.0)),
            collision_object_name=str(payload.get("collision_object_name", "")),
            collision_support_surface_name=str(payload.get("collision_support_surface_name", "")),
            place_padding=float(payload.get("place_padding", 0.0)),
            additional_collision_operations=ops,
            additional_link_padding=pads,
            path_constraints=constraints,
            allow_gripper_support_collision=bool(payload.get("allow_gripper_support_collision", False)),
            only_perform_feasibility_test=bool(payload.get("only_perform_feasibility_test", False)),
        )


@dataclass
class ReactivePlaceGoal:
    arm_name: str
    collision_object_name: str
    collision_support_surface_name: str
    trajectory: JointTrajectory
    final_place_pose: PoseStamped


@dataclass
class ReactivePlaceResult:
    success: bool
    error_code: int = 0


class PlaceResultCode(Enum):
    SUCCESS = 1
    PLACE_OUT_OF_REACH = 2
    PLACE_IN_COLLISION = 3
    PLACE_UNFEASIBLE = 4
    PREPLACE_OUT_OF_REACH = 5
    PREPLACE_IN_COLLISION = 6
    PREPLACE_UNFEASIBLE = 7
    MOVE_ARM_FAILED = 8
    PLACE_FAILED = 9
    RETREAT_OUT_OF_REACH = 10
    RETREAT_IN_COLLISION = 11
    RETREAT_UNFEASIBLE = 12
    RETREAT_FAILED = 13


@dataclass
class AttemptResult:
    code: PlaceResultCode
    continuable: bool
    detail: str = ""

    @property
    def success(self) -> bool:
        return self.code is PlaceResultCode.SUCCESS


class UnrecoverableKind(Enum):
    FRAME_UNAVAILABLE = "frame_unavailable"
    TRANSFORM_FAILURE = "transform_failure"
    INTERNAL_INCONSISTENCY = "internal_inconsistency"


@dataclass
class UnrecoverableError:
    """
    Returned instead of an AttemptResult when the attempt hit a condition that
    is not a feasibility question (missing frames, FK that disagrees with its
    own trajectory). It has no result code on purpose.
    """
    kind: UnrecoverableKind
    message: str = ""

    @property
    def success(self) -> bool:
        return False

    @property
    def continuable(self) -> bool:
        return False

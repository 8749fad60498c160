# ===============================
# FILE: src/place_sdk/core/config.py
# ===============================
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Any, List, Tuple
import yaml


APPROACH_VARIANTS = ("scripted", "reactive")


@dataclass
class HandDescription:
    """
    Per-arm gripper facts the place executor needs.

    - gripper_collision_name: collision-model name covering the whole gripper
    - gripper_links: links that get zero padding near the support surface
    - attached_link_name: link the grasped object is attached to
    - gripper_frame: frame the hand approach direction is expressed in
    - robot_frame: canonical frame for gripper poses (usually the arm base)
    - approach_direction: direction the gripper moves to approach an object
    """
    gripper_collision_name: str
    gripper_links: List[str]
    attached_link_name: str
    gripper_frame: str
    robot_frame: str = "base_link"
    approach_direction: Tuple[float, float, float] = (1.0, 0.0, 0.0)


@dataclass
class PlaceConfig:
    frame_wait_timeout_s: float = 1.0
    reactive_timeout_s: float = 60.0
    approach: str = "scripted"   # "scripted" | "reactive"
    hands: Dict[str, HandDescription] = field(default_factory=dict)

    def hand(self, arm_name: str) -> HandDescription:
        if arm_name not in self.hands:
            raise ValueError(f"No hand description for arm '{arm_name}'")
        return self.hands[arm_name]


_REQUIRED_HAND_KEYS = ("gripper_collision_name", "attached_link_name", "gripper_frame")


def _hand_from_dict(arm: str, h: Dict[str, Any]) -> HandDescription:
    missing = [k for k in _REQUIRED_HAND_KEYS if not h.get(k)]
    if missing:
        raise ValueError(f"Hand '{arm}' is missing {', '.join(missing)}")
    direction = list(h.get("approach_direction", [1.0, 0.0, 0.0]))
    if len(direction) != 3:
        raise ValueError(f"Hand '{arm}': approach_direction needs 3 values")
    return HandDescription(
        gripper_collision_name=str(h["gripper_collision_name"]),
        gripper_links=[str(l) for l in (h.get("gripper_links", []) or [])],
        attached_link_name=str(h["attached_link_name"]),
        gripper_frame=str(h["gripper_frame"]),
        robot_frame=str(h.get("robot_frame", "base_link")),
        approach_direction=tuple(float(v) for v in direction),
    )


def place_config_from_dict(y: Dict[str, Any]) -> PlaceConfig:
    approach = str(y.get("approach", "scripted")).lower()
    if approach not in APPROACH_VARIANTS:
        raise ValueError(f"Unknown approach '{approach}'")
    hands = {str(arm): _hand_from_dict(str(arm), h or {}) for arm, h in (y.get("hands", {}) or {}).items()}
    return PlaceConfig(
        frame_wait_timeout_s=float(y.get("frame_wait_timeout_s", 1.0)),
        reactive_timeout_s=float(y.get("reactive_timeout_s", 60.0)),
        approach=approach,
        hands=hands,
    )


def load_place_config(path: str) -> PlaceConfig:
    """
    YAML layout:
    ---
    approach: scripted
    frame_wait_timeout_s: 1.0
    reactive_timeout_s: 60.0
    hands:
      right_arm:
        gripper_collision_name: r_end_effector
        gripper_links: [r_gripper_palm_link, r_gripper_l_finger_link]
        attached_link_name: r_gripper_r_finger_tip_link
        gripper_frame: r_wrist_roll_link
        robot_frame: base_link
        approach_direction: [1, 0, 0]
    """
    with open(path, "r", encoding="utf-8") as f:
        y = yaml.safe_load(f) or {}
    return place_config_from_dict(y)

#!/usr/bin/env python3
# ================================
# FILE: scripts/place_dry_run.py
# ================================

# python scripts/place_dry_run.py \
#   --config config/place.yaml \
#   --goal config/goal_example.yaml \
#   --feasibility-only

import argparse
import logging
import sys

import yaml

from place_sdk.core.config import load_place_config
from place_sdk.core.message_types import PlaceGoal, PoseStamped, Pose, UnrecoverableError
from place_sdk.core.robot_io import (
    DummyGripper, DummyKinematics, DummyMarkers, DummyMotion, DummyReactivePlacer, DummyTransformer,
)
from place_sdk.execution.place_executor import PlaceExecutor, place_first_feasible


def main():
    ap = argparse.ArgumentParser(description="Run the place sequence against scripted dummy services")
    ap.add_argument("--config", default="config/place.yaml", help="place executor config (YAML)")
    ap.add_argument("--goal", default="config/goal_example.yaml", help="goal + candidate locations (YAML)")
    ap.add_argument("--feasibility-only", action="store_true", help="stop after trajectory negotiation")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    cfg = load_place_config(args.config)
    with open(args.goal, "r", encoding="utf-8") as f:
        y = yaml.safe_load(f) or {}
    goal = PlaceGoal.from_dict(y.get("goal", {}) or {})
    if args.feasibility_only:
        goal.only_perform_feasibility_test = True
    locations = [PoseStamped.from_dict(d) for d in (y.get("locations", []) or [])]
    frames = {str(k): Pose.from_dict(v or {}) for k, v in (y.get("frames", {}) or {}).items()}

    root = cfg.hand(goal.arm_name).robot_frame
    executor = PlaceExecutor(
        config=cfg,
        transformer=DummyTransformer(frames=frames, root_frame=root),
        kinematics=DummyKinematics(),
        motion=DummyMotion(),
        gripper=DummyGripper(),
        reactive=DummyReactivePlacer(),
        markers=DummyMarkers(),
    )
    result, idx = place_first_feasible(executor, goal, locations)
    if result is None:
        print("No candidate locations given")
        sys.exit(2)
    if isinstance(result, UnrecoverableError):
        print(f"candidate {idx}: UNRECOVERABLE ({result.kind.value}) {result.message}")
        sys.exit(1)
    tail = f" [{result.detail}]" if result.detail else ""
    print(f"candidate {idx}: {result.code.name} continuable={result.continuable}{tail}")
    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()

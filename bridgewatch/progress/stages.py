"""
Stage aggregation.

Stage status is a pure function of the member steps and is recomputed from
the full step list after every transition.
"""
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..core.types import (
    Progress,
    Stage,
    StageStatus,
    StageTemplate,
    Step,
    StepStatus,
    TrafficLight,
)


def derive_stage_status(steps: Sequence[Step]) -> StageStatus:
    """
    Derive a stage status from its member steps.

    failed if any member failed; else completed if every member is completed
    or skipped; else loading if any member is loading or completed; else
    pending. A stage without members is pending.
    """
    if not steps:
        return StageStatus.PENDING

    statuses = [s.status for s in steps]
    if StepStatus.FAILED in statuses:
        return StageStatus.FAILED
    if all(status.is_done for status in statuses):
        return StageStatus.COMPLETED
    if StepStatus.LOADING in statuses or StepStatus.COMPLETED in statuses:
        return StageStatus.LOADING
    return StageStatus.PENDING


def derive_stages(
    steps: Sequence[Step],
    templates: Iterable[StageTemplate],
) -> Tuple[Stage, ...]:
    """
    Build the stage list for a set of steps.

    Stages follow template order; stage ids used by steps but missing from
    the templates are appended in order of first appearance.
    """
    members: Dict[str, List[Step]] = {}
    for step in steps:
        members.setdefault(step.stage, []).append(step)

    ordered: List[StageTemplate] = list(templates)
    known = {t.id for t in ordered}
    for stage_id in members:
        if stage_id not in known:
            ordered.append(StageTemplate(id=stage_id, title=stage_id))
            known.add(stage_id)

    stages = []
    for template in ordered:
        stage_steps = members.get(template.id, [])
        stages.append(Stage(
            id=template.id,
            title=template.title,
            description=template.description,
            status=derive_stage_status(stage_steps),
            step_ids=tuple(s.id for s in stage_steps),
            estimated_duration=sum(s.estimated_duration or 0 for s in stage_steps),
        ))
    return tuple(stages)


def traffic_light(stage: Stage) -> TrafficLight:
    """Red/yellow/green/gray simplification of a stage status."""
    if stage.status == StageStatus.FAILED:
        return TrafficLight.RED
    if stage.status in (StageStatus.LOADING, StageStatus.WARNING):
        return TrafficLight.YELLOW
    if stage.status == StageStatus.COMPLETED:
        return TrafficLight.GREEN
    return TrafficLight.GRAY


def current_stage(progress: Progress) -> Optional[Stage]:
    """First stage that is not completed."""
    for stage in progress.stages:
        if stage.status != StageStatus.COMPLETED:
            return stage
    return None

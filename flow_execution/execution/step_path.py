"""
Step Path Builder.

A Step is what the user sees at once: a group plus every directly following
group whose NodeMapping asks to be displayed with the previous one. The
StepPath is discovered one Step at a time as the processor names the next
group, so it only ever contains the branch actually taken.
"""

import logging
from typing import List

from ..domain.models import FlowDefinition, Group

logger = logging.getLogger(__name__)


def combined_step(flow: FlowDefinition, group_id: str) -> List[Group]:
    """
    Returns [group, *following groups flagged display_with_previous].

    The run stops at the first following group without the flag, or at the
    end of the group list. An unknown group id yields an empty list.
    """
    start = flow.group_index(group_id)
    if start == -1:
        return []

    step = [flow.groups[start]]
    for group in flow.groups[start + 1:]:
        mapping = flow.mapping_for(group.id)
        if mapping and mapping.display_with_previous:
            step.append(group)
        else:
            break
    return step


class StepPathBuilder:
    def __init__(self, flow: FlowDefinition):
        self.flow = flow

    def step_for(self, group_id: str) -> List[Group]:
        return combined_step(self.flow, group_id)

    def initial_path(self) -> List[List[Group]]:
        """The path a fresh session starts with: the first group's combined step."""
        if not self.flow.groups:
            return []
        first = self.step_for(self.flow.groups[0].id)
        return [first] if first else []

    def groups_of(self, step_ids: List[str]) -> List[Group]:
        groups = []
        for group_id in step_ids:
            group = self.flow.get_group(group_id)
            if group is None:
                logger.warning(f"Step references unknown group '{group_id}'")
                continue
            groups.append(group)
        return groups


def step_ids(step: List[Group]) -> List[str]:
    return [group.id for group in step]

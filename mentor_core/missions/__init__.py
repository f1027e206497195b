"""
Missions Module - Personalised daily missions.

Components:
- generator: pure mission planning (plan_missions) and MissionGenerator
- scheduler: MissionScheduler (save, active, record_progress)
"""

from mentor_core.missions.generator import (
    MissionContext,
    MissionGenerator,
    MissionTemplate,
    RecurringMistake,
    SkillGap,
    analyze_user_state,
    plan_missions,
)
from mentor_core.missions.scheduler import MissionScheduler

__all__ = [
    "MissionContext",
    "MissionGenerator",
    "MissionTemplate",
    "RecurringMistake",
    "SkillGap",
    "analyze_user_state",
    "plan_missions",
    "MissionScheduler",
]

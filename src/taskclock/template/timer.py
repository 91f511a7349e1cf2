# SPDX-License-Identifier: MIT

from taskclock.migrate.registry import SCHEMA_VERSION
from taskclock.model.timer import ScopeTimer, TaskTimers, TimerState


def get_scope_timer_template() -> ScopeTimer:
    return {
        "state": TimerState.IDLE,
        "current_entry": None,
        "estimated_time": None,
        "total_time": 0,
        "entry_count": 0,
    }


def get_task_timers_template() -> TaskTimers:
    return {
        "schema_version": SCHEMA_VERSION,
        "global_timer": get_scope_timer_template(),
        "manual_estimate_set": False,
        "checklist_totals": {},
    }

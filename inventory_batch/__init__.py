"""Triggers: on-demand generation and the monthly polling runner."""

from inventory_batch.schedule import scheduled_fire_time, should_fire
from inventory_batch.trigger import GenerationTrigger, ScheduledGenerationRunner

__all__ = [
    "GenerationTrigger",
    "ScheduledGenerationRunner",
    "scheduled_fire_time",
    "should_fire",
]

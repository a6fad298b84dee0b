"""Workflow automation execution engine."""

from flowline.engine.branching import resolve_next_node
from flowline.engine.interpreter import NodeInterpreter
from flowline.engine.matcher import TriggerMatcher, keyword_matches
from flowline.engine.runner import ExecutionRunner
from flowline.engine.scheduler import ResumeScheduler
from flowline.engine.service import FlowEngine
from flowline.engine.spawner import ExecutionSpawner

__all__ = [
    "ExecutionRunner",
    "ExecutionSpawner",
    "FlowEngine",
    "NodeInterpreter",
    "ResumeScheduler",
    "TriggerMatcher",
    "keyword_matches",
    "resolve_next_node",
]

"""Workflow Engine - The brain of the system"""
from .engine import WorkflowEngine
from .permission_guard import PermissionGuard
from .transition_resolver import TransitionResolver, ResolvedTransition
from .condition_evaluator import (
    ConditionEvaluator, ConditionRegistry, ConditionContext, ConditionStrategy, get_condition_registry,
    TimeElapsedCondition, PriorityThresholdCondition, AssignmentCondition, PredicateCondition
)
from .audit_writer import AuditWriter
from .automatic_processor import AutomaticTransitionProcessor

__all__ = [
    "WorkflowEngine",
    "PermissionGuard",
    "TransitionResolver",
    "ResolvedTransition",
    "ConditionEvaluator",
    "ConditionRegistry",
    "ConditionContext",
    "ConditionStrategy",
    "get_condition_registry",
    "TimeElapsedCondition",
    "PriorityThresholdCondition",
    "AssignmentCondition",
    "PredicateCondition",
    "AuditWriter",
    "AutomaticTransitionProcessor",
]

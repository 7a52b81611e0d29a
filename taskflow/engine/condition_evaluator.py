"""Condition Evaluator - Named, pluggable transition conditions

A transition's ``condition_expression`` is a comma-separated list of
condition names. Each name is looked up in a ``ConditionRegistry`` and the
transition is permitted only when every referenced condition passes.
"""
from dataclasses import dataclass
from functools import lru_cache
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from ..domain.models import TaskItem, Project, User, WorkflowTransition
from ..domain.enums import TaskPriority, TimeReferenceField
from ..utils.time import ensure_utc
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConditionContext:
    """Everything a condition may look at"""
    task: TaskItem
    project: Optional[Project]
    assignee: Optional[User]
    owner: Optional[User]
    now: datetime


@runtime_checkable
class ConditionStrategy(Protocol):
    """A pure predicate over a condition context"""
    
    def evaluate(self, context: ConditionContext) -> bool:
        ...


# ============================================================================
# Built-in strategies
# ============================================================================

@dataclass(frozen=True)
class TimeElapsedCondition:
    """True once ``delay`` has passed since the selected task timestamp"""
    delay: timedelta
    reference_field: TimeReferenceField = TimeReferenceField.CREATED_AT
    
    def evaluate(self, context: ConditionContext) -> bool:
        reference = getattr(context.task, self.reference_field.value, None)
        if reference is None:
            reference = context.task.created_at
        return ensure_utc(context.now) >= ensure_utc(reference) + self.delay


@dataclass(frozen=True)
class PriorityThresholdCondition:
    """True when the task priority is at least ``minimum``"""
    minimum: TaskPriority
    
    def evaluate(self, context: ConditionContext) -> bool:
        return context.task.priority.at_least(self.minimum)


@dataclass(frozen=True)
class AssignmentCondition:
    """True when the task has an assignee (or lacks one, if not required)"""
    require_assignee: bool = True
    
    def evaluate(self, context: ConditionContext) -> bool:
        has_assignee = bool(context.task.assignee_id)
        return has_assignee if self.require_assignee else not has_assignee


@dataclass(frozen=True)
class PredicateCondition:
    """Adapts a plain function to the strategy interface"""
    predicate: Callable[[ConditionContext], bool]
    
    def evaluate(self, context: ConditionContext) -> bool:
        return bool(self.predicate(context))


def default_conditions() -> Dict[str, ConditionStrategy]:
    """Conditions every engine starts with"""
    return {
        "auto_progress_24h": TimeElapsedCondition(delay=timedelta(hours=24)),
        "high_priority_only": PriorityThresholdCondition(minimum=TaskPriority.HIGH),
        "requires_assignment": AssignmentCondition(require_assignee=True),
    }


# ============================================================================
# Registry
# ============================================================================

class ConditionRegistry:
    """
    Name -> strategy mapping
    
    Populated at startup; lookups afterwards are read-only.
    """
    
    def __init__(self, strategies: Optional[Dict[str, ConditionStrategy]] = None):
        self._strategies: Dict[str, ConditionStrategy] = {}
        for name, strategy in (strategies or {}).items():
            self.register(name, strategy)
    
    @classmethod
    def with_defaults(cls) -> "ConditionRegistry":
        return cls(default_conditions())
    
    def register(self, name: str, strategy) -> None:
        """
        Register a named condition
        
        Args:
            name: Identifier used in condition expressions (no commas)
            strategy: Object with ``evaluate(context)`` or a plain callable
        """
        name = name.strip() if name else ""
        if not name or "," in name:
            raise ValueError(f"Invalid condition name: {name!r}")
        
        if not isinstance(strategy, ConditionStrategy):
            if not callable(strategy):
                raise TypeError(f"Condition {name!r} must define evaluate() or be callable")
            strategy = PredicateCondition(strategy)
        
        if name in self._strategies:
            logger.info(f"Replacing condition '{name}'")
        self._strategies[name] = strategy
    
    def get(self, name: str) -> Optional[ConditionStrategy]:
        return self._strategies.get(name)
    
    def names(self) -> List[str]:
        return sorted(self._strategies)
    
    def __contains__(self, name: object) -> bool:
        return name in self._strategies


@lru_cache()
def get_condition_registry() -> ConditionRegistry:
    """
    Process-wide registry shared by the API and the scheduler
    
    Register custom conditions on it at startup, before requests arrive.
    """
    return ConditionRegistry.with_defaults()


# ============================================================================
# Evaluator
# ============================================================================

class ConditionEvaluator:
    """
    Evaluate transition conditions (conjunction of named conditions)
    
    Unknown condition names are skipped with a warning rather than failing
    the transition.
    """
    
    def __init__(self, registry: Optional[ConditionRegistry] = None):
        self.registry = registry if registry is not None else ConditionRegistry.with_defaults()
    
    def is_satisfied(self, transition: WorkflowTransition, context: ConditionContext) -> bool:
        """True when every condition on the transition passes"""
        return not self.failed_conditions(transition.condition_names, context)
    
    def failed_conditions(
        self,
        condition_names: Iterable[str],
        context: ConditionContext
    ) -> List[str]:
        """Names of the conditions that did not pass"""
        failed = []
        for name in condition_names:
            strategy = self.registry.get(name)
            if strategy is None:
                logger.warning(
                    f"Unknown condition '{name}' ignored",
                    extra={"task_id": context.task.task_id}
                )
                continue
            
            if not self._evaluate_single(name, strategy, context):
                failed.append(name)
        
        return failed
    
    def _evaluate_single(
        self,
        name: str,
        strategy: ConditionStrategy,
        context: ConditionContext
    ) -> bool:
        try:
            return bool(strategy.evaluate(context))
        except Exception as e:
            logger.warning(
                f"Condition '{name}' evaluation failed: {e}",
                extra={"task_id": context.task.task_id}
            )
            return False  # Fail closed

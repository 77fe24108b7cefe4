from star_script.runtime.evaluator import (
    Environment, EvaluationError, Keyword, OperationLimitExceeded, Unresolved, UnresolvedCall, evaluate
)
from star_script.runtime.runner import RunResult, make_default_env, run_script, star_namespace

__all__ = [
    'Environment', 'EvaluationError', 'Keyword', 'OperationLimitExceeded', 'Unresolved',
    'UnresolvedCall', 'evaluate', 'RunResult', 'make_default_env', 'run_script', 'star_namespace',
]

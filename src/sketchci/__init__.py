from .deps import DependencyResolver
from .packages import PackagePlan, PackageResolver
from .reporter import ActionReporter, FailureTally, Policy, RunAborted, SelfTestDetected
from .runner import CLIOptions, MatrixRunner, run_ci

__version__ = "0.1.0"

__all__ = [
    "ActionReporter",
    "CLIOptions",
    "DependencyResolver",
    "FailureTally",
    "MatrixRunner",
    "PackagePlan",
    "PackageResolver",
    "Policy",
    "RunAborted",
    "SelfTestDetected",
    "run_ci",
]

"""kdm-convergence: metadata URL change propagation harness."""

from .cluster_api import ClusterApi, KubeClusterApi
from .config import HarnessConfig
from .exceptions import (
    ApiError,
    ConfigError,
    ConfigErrorCodes,
    ConvergenceError,
    ConvergenceErrorCodes,
    ConvergenceFailedError,
    DecodeError,
    EncodeError,
    ExecFailure,
    ListError,
    NotFoundError,
    PollCancelledError,
    PollTimeoutError,
    ScaleTimeoutError,
    WriteConflictError,
)
from .harness import run_verification
from .inspector import ReplicaInspector
from .loader import apply_overrides, load, load_from_env
from .models import (
    DEFAULT_BACKOFF,
    BackoffPolicy,
    DeploymentStatus,
    ExecResult,
    ReplicaOutput,
    ReplicaSelector,
    ScaleTarget,
    Setting,
    Verdict,
    VerificationOutcome,
    VerificationPlan,
    VerificationReport,
    VerificationState,
)
from .mutator import ConfigMutator
from .poller import poll
from .scaler import ReplicaScaler
from .session import ClusterSession
from .settings_api import SettingsApi, SteveSettingsApi
from .telemetry import configure_logging, init_telemetry
from .verifier import ConvergenceVerifier
from .versions import RancherVersionReader, VersionReader

__all__ = [
    "BackoffPolicy",
    "DEFAULT_BACKOFF",
    "Setting",
    "ScaleTarget",
    "DeploymentStatus",
    "ReplicaSelector",
    "ExecResult",
    "ReplicaOutput",
    "VerificationOutcome",
    "VerificationPlan",
    "VerificationReport",
    "VerificationState",
    "Verdict",
    "poll",
    "ConfigMutator",
    "ReplicaScaler",
    "ReplicaInspector",
    "ConvergenceVerifier",
    "SettingsApi",
    "SteveSettingsApi",
    "ClusterApi",
    "KubeClusterApi",
    "VersionReader",
    "RancherVersionReader",
    "ClusterSession",
    "HarnessConfig",
    "load",
    "load_from_env",
    "apply_overrides",
    "configure_logging",
    "init_telemetry",
    "run_verification",
    "ConvergenceError",
    "ConvergenceErrorCodes",
    "NotFoundError",
    "DecodeError",
    "EncodeError",
    "WriteConflictError",
    "ApiError",
    "PollTimeoutError",
    "PollCancelledError",
    "ScaleTimeoutError",
    "ExecFailure",
    "ListError",
    "ConvergenceFailedError",
    "ConfigError",
    "ConfigErrorCodes",
]

"""kdm_convergence の例外型定義"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import DeploymentStatus, VerificationReport


class ConvergenceError(Exception):
    """kdm_convergence のエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class ConvergenceErrorCodes:
    """ConvergenceError のエラーコード定数。"""

    NOT_FOUND: str = "NOT_FOUND"
    DECODE_ERROR: str = "DECODE_ERROR"
    ENCODE_ERROR: str = "ENCODE_ERROR"
    WRITE_CONFLICT: str = "WRITE_CONFLICT"
    API_ERROR: str = "API_ERROR"
    POLL_TIMEOUT: str = "POLL_TIMEOUT"
    POLL_CANCELLED: str = "POLL_CANCELLED"
    SCALE_TIMEOUT: str = "SCALE_TIMEOUT"
    EXEC_FAILURE: str = "EXEC_FAILURE"
    LIST_ERROR: str = "LIST_ERROR"
    SESSION_ERROR: str = "SESSION_ERROR"
    CONVERGENCE_FAILED: str = "CONVERGENCE_FAILED"


class NotFoundError(ConvergenceError):
    """名前付きリソースが存在しない。実行を中断する。"""

    def __init__(self, resource: str, name: str, cause: Exception | None = None) -> None:
        self.resource = resource
        self.name = name
        super().__init__(
            code=ConvergenceErrorCodes.NOT_FOUND,
            message=f"{resource} '{name}' not found",
            cause=cause,
        )


class DecodeError(ConvergenceError):
    """設定値のデコードに失敗した。"""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(code=ConvergenceErrorCodes.DECODE_ERROR, message=message, cause=cause)


class EncodeError(ConvergenceError):
    """設定値のエンコードに失敗した。"""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(code=ConvergenceErrorCodes.ENCODE_ERROR, message=message, cause=cause)


class WriteConflictError(ConvergenceError):
    """書き込みがリソースバージョンの競合で拒否された。"""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(code=ConvergenceErrorCodes.WRITE_CONFLICT, message=message, cause=cause)


class ApiError(ConvergenceError):
    """一時的なインフラ障害。ポーリング中はリトライ対象。"""

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        status: int | None = None,
    ) -> None:
        self.status = status
        super().__init__(code=ConvergenceErrorCodes.API_ERROR, message=message, cause=cause)


class PollTimeoutError(ConvergenceError):
    """試行回数の上限までに条件が満たされなかった。"""

    def __init__(self, attempts: int, last_value: Any = None, description: str = "") -> None:
        self.attempts = attempts
        self.last_value = last_value
        subject = f" waiting for {description}" if description else ""
        super().__init__(
            code=ConvergenceErrorCodes.POLL_TIMEOUT,
            message=f"gave up{subject} after {attempts} attempts (last observed: {last_value!r})",
        )


class PollCancelledError(ConvergenceError):
    """外部のキャンセル信号でポーリングが中断された。"""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(
            code=ConvergenceErrorCodes.POLL_CANCELLED,
            message=f"polling cancelled after {attempts} attempts",
        )


class ScaleTimeoutError(ConvergenceError):
    """Deployment が規定回数内に目標レプリカ数へ到達しなかった。"""

    def __init__(
        self,
        namespace: str,
        name: str,
        desired: int,
        last_status: DeploymentStatus | None,
        attempts: int,
        cause: Exception | None = None,
    ) -> None:
        self.namespace = namespace
        self.name = name
        self.desired = desired
        self.last_status = last_status
        self.attempts = attempts
        ready = last_status.ready_replicas if last_status is not None else "unknown"
        super().__init__(
            code=ConvergenceErrorCodes.SCALE_TIMEOUT,
            message=(
                f"deployment {namespace}/{name} did not reach {desired} ready replicas "
                f"after {attempts} attempts (ready: {ready})"
            ),
            cause=cause,
        )


class ExecFailure(ConvergenceError):
    """レプリカ上のリモートコマンド実行に失敗した。該当レプリカのみに記録される。"""

    def __init__(
        self,
        replica: str,
        message: str,
        output: str = "",
        cause: Exception | None = None,
    ) -> None:
        self.replica = replica
        self.output = output
        super().__init__(
            code=ConvergenceErrorCodes.EXEC_FAILURE,
            message=f"exec in {replica} failed: {message}",
            cause=cause,
        )


class ListError(ConvergenceError):
    """レプリカ一覧の取得に失敗した。"""

    def __init__(self, namespace: str, selector: str, cause: Exception | None = None) -> None:
        self.namespace = namespace
        self.selector = selector
        super().__init__(
            code=ConvergenceErrorCodes.LIST_ERROR,
            message=f"failed to list replicas in {namespace} matching '{selector}'",
            cause=cause,
        )


class ConvergenceFailedError(ConvergenceError):
    """一つ以上のレプリカが新しい値に収束しなかった。"""

    def __init__(self, report: VerificationReport) -> None:
        self.report = report
        super().__init__(
            code=ConvergenceErrorCodes.CONVERGENCE_FAILED,
            message=report.summary(),
        )


class ConfigError(Exception):
    """設定読み込みのエラー。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class ConfigErrorCodes:
    """ConfigError のエラーコード定数。"""

    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    VALIDATION: str = "VALIDATION_ERROR"

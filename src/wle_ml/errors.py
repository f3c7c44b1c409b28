"""
Exception taxonomy for the WLE-ML pipeline.

Every error names the pipeline stage and, where applicable, the model or
column that caused it, so that CLI users get an actionable message.

Propagation rules:
    - InvalidPartition, ConfigurationError: fatal, abort the run.
    - TrainingFailure: recoverable for a single base model (the combiner
      proceeds without it); fatal only when no base model survives.
    - DataShapeMismatch: fatal when scoring or re-applying a column schema.
"""


class WLEError(Exception):
    """Base class for all pipeline errors."""

    stage: str = "pipeline"

    def __init__(self, message: str, stage: str | None = None):
        if stage is not None:
            self.stage = stage
        self.message = message
        super().__init__(f"[{self.stage}] {message}")

    def __reduce__(self):
        return (self.__class__, (self.message,), self.__dict__)


class InvalidPartition(WLEError):
    """Raised when split proportions or the labelled dataset cannot be partitioned."""

    stage = "partition"


class DataShapeMismatch(WLEError):
    """Raised when a dataset's columns do not match the training column schema."""

    stage = "cleaning"

    def __init__(
        self,
        message: str,
        missing_columns: list[str] | None = None,
        dataset: str | None = None,
        stage: str | None = None,
    ):
        self.missing_columns = list(missing_columns or [])
        self.dataset = dataset
        super().__init__(message, stage=stage)


class TrainingFailure(WLEError):
    """Raised when a base model cannot be fitted or cross-validated."""

    stage = "training"

    def __init__(self, model_name: str, reason: str, stage: str = "training"):
        self.model_name = model_name
        self.reason = reason
        super().__init__(f"base model '{model_name}' failed: {reason}", stage=stage)

    def __reduce__(self):
        # Failures travel back from joblib workers; keep the original arguments.
        return (self.__class__, (self.model_name, self.reason, self.stage))


class ConfigurationError(WLEError):
    """Raised when models or options are inconsistent with how they were trained."""

    stage = "configuration"

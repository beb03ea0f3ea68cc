class MccEvalError(Exception):
    """Base for all mcceval exceptions."""

    pass


class ConfigurationError(MccEvalError):
    """Invalid evaluation parameters (chunk size, sample size, body ceiling)."""

    pass


class DecodeError(MccEvalError):
    """Genome encoding is malformed or does not fit its decoder factory."""

    pass


class StorageError(MccEvalError):
    """Genome repository or result sink failures."""

    pass


class SimulationError(MccEvalError):
    """External simulator failed or produced an unreadable result."""

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class SimulationTimeoutError(SimulationError):
    """Simulator exceeded its time budget and was killed."""

    pass

"""Exception hierarchy for the risk engine."""


class RiskEngineError(Exception):
    """Base class for risk engine failures."""


class AnalysisFault(RiskEngineError):
    """A scoring pass could not produce a decision.

    Raised by RiskEngine.evaluate and converted into the fail-open ALLOW
    outcome by RiskEngine.analyze.
    """

    def __init__(self, message: str, *, user_id: str | None = None) -> None:
        super().__init__(message)
        self.user_id = user_id


class AuditWriteError(RiskEngineError):
    """The audit sink rejected an entry; the chain head was not advanced."""


class TrainingError(RiskEngineError):
    """Model training could not complete."""

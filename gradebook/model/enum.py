import enum


class DeploymentEnvironment(enum.Enum):
    Production = "production"
    Development = "development"
    Staging = "staging"
    Test = "test"
    Local = "local"


class LikertLevel(enum.Enum):
    """Five-step categorical scale shared by participation and engagement."""

    VeryLow = "very_low"
    Low = "low"
    Medium = "medium"
    High = "high"
    VeryHigh = "very_high"

    @property
    def score(self) -> int:
        return _LIKERT_SCORES[self]


_LIKERT_SCORES: dict[LikertLevel, int] = {
    LikertLevel.VeryLow: 1,
    LikertLevel.Low: 2,
    LikertLevel.Medium: 3,
    LikertLevel.High: 4,
    LikertLevel.VeryHigh: 5,
}

"""Error types raised for malformed analysis inputs."""


class MRAnalysisError(ValueError):
    """Base class for caller contract violations in the MR core."""


class InvalidMethodError(MRAnalysisError):
    """Raised when a scoring method tag is not one of the supported methods."""


class ShapeMismatchError(MRAnalysisError):
    """Raised when two matrices cannot be combined along their columns."""


class StatisticalPreconditionError(MRAnalysisError):
    """Raised when a grouping is too degenerate for the requested test."""


class AlignmentError(MRAnalysisError):
    """Raised when a weight or cluster vector does not cover the matrix columns."""

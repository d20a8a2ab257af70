"""Exceptions and warnings raised by bayesworkflow."""


class BayesWorkflowError(Exception):
    """Base class for all bayesworkflow errors."""


class ValidationError(BayesWorkflowError, ValueError):
    """Malformed or empty observation set, or an invalid model specification."""


class SchemaMismatch(BayesWorkflowError, ValueError):
    """Supplied data does not match the fields or types a model declares."""


class SamplerError(BayesWorkflowError, RuntimeError):
    """The sampling engine failed. No partial draws are returned."""


class SamplerTimeout(SamplerError):
    """Sampling exceeded its wall-clock budget."""


class ConvergenceWarning(UserWarning):
    """
    Diagnostics indicate the draws may not represent the posterior.

    Raised through ``warnings.warn`` and also attached to the
    ``PosteriorSampleSet`` so callers that silence warnings can still
    inspect it. Re-running with identical inputs reproduces the problem:
    change priors, parameterization or sampler settings first.
    """

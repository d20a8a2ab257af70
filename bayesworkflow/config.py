"""Sampler configuration."""

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class SamplerConfig:
    """
    Configuration for PyMC's NUTS sampler.

    Attributes
    ----------
    draws : int
        Posterior draws kept per chain
    tune : int
        Warmup iterations per chain (adapt step size and mass matrix, discarded)
    chains : int
        Number of independent chains
    cores : int, optional
        Worker processes. None lets PyMC decide (one per chain up to CPU count)
    target_accept : float
        Target acceptance rate for NUTS (higher = smaller steps, fewer divergences)
    random_seed : int, optional
        Seed for the per-chain random streams
    timeout : float, optional
        Wall-clock budget in seconds for the whole sampling call
    max_rhat : float
        Largest acceptable split R-hat
    min_ess : float
        Smallest acceptable bulk/tail effective sample size
    max_divergences : int
        Largest acceptable number of post-warmup divergent transitions
    """

    draws: int = 2000
    tune: int = 1000
    chains: int = 4
    cores: Optional[int] = None
    target_accept: float = 0.90
    random_seed: Optional[int] = 42
    timeout: Optional[float] = None
    max_rhat: float = 1.01
    min_ess: float = 400
    max_divergences: int = 0

    def __post_init__(self):
        if self.draws < 1:
            raise ValueError(f"draws must be >= 1. Got: {self.draws}")
        if self.tune < 0:
            raise ValueError(f"tune must be >= 0. Got: {self.tune}")
        if self.chains < 1:
            raise ValueError(f"chains must be >= 1. Got: {self.chains}")
        if self.cores is not None and self.cores < 1:
            raise ValueError(f"cores must be >= 1. Got: {self.cores}")
        if not 0 < self.target_accept < 1:
            raise ValueError(
                f"target_accept must be in (0,1), got {self.target_accept}"
            )
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive. Got: {self.timeout}")

    @classmethod
    def quick(cls, **overrides) -> "SamplerConfig":
        """Faster settings for prototyping (2 chains, 500 draws, 500 warmup)."""
        settings = dict(draws=500, tune=500, chains=2)
        settings.update(overrides)
        return cls(**settings)

    def with_overrides(self, **overrides) -> "SamplerConfig":
        """Return a copy with the non-None overrides applied."""
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **overrides)

    @property
    def total_draws(self) -> int:
        return self.draws * self.chains

"""Default settings for binning, optimal binning and rule learning."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

type BinMethod = Literal["length", "content", "clusters"]

type OptimalBinMethod = Literal["logreg", "infogain", "naive"]

type TiesMethod = Literal["first", "chisq"]

type MissingPolicy = Literal["omit", "keep"]


class OneRSettings(BaseSettings):
    """Library-wide defaults, overridable through `ONERULE_*` environment variables.

    Attributes:
        nbins (int): Number of bins used by `bin_series` / `bin_table`.
        bin_method (BinMethod): Unsupervised binning strategy.
        optbin_method (OptimalBinMethod): Supervised binning strategy.
        ties_method (TiesMethod): How `one_r` chooses among equally accurate attributes.
        missing (MissingPolicy): Whether rows with missing values are removed
            (`"omit"`) or kept under an extra `"NA"` level (`"keep"`).
        maxlevels (int): Level-count ceiling applied by `maxlevels`.

    Examples:
        >>> import os
        >>> os.environ["ONERULE_NBINS"] = "3"  # doctest: +SKIP
        >>> get_settings.cache_clear()  # doctest: +SKIP
        >>> get_settings().nbins  # doctest: +SKIP
        3
    """

    model_config = SettingsConfigDict(
        env_prefix="ONERULE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    nbins: int = Field(default=5, gt=1, description="Number of bins for unsupervised binning.")
    bin_method: BinMethod = Field(default="length", description="Unsupervised binning strategy.")
    optbin_method: OptimalBinMethod = Field(default="logreg", description="Supervised binning strategy.")
    ties_method: TiesMethod = Field(default="first", description="Tie-break policy among best attributes.")
    missing: MissingPolicy = Field(default="omit", description="Missing-value policy.")
    maxlevels: int = Field(default=20, gt=2, description="Maximum number of levels kept by `maxlevels`.")


@lru_cache(maxsize=1)
def get_settings() -> OneRSettings:
    """Return the cached library settings.

    Returns:
        OneRSettings: Settings loaded from the environment on first call.
    """
    return OneRSettings()

"""Tests for library settings: defaults, environment overrides and validation."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import numpy as np
import polars as pl
import pytest
from pydantic import ValidationError
from pytest_check import check

from onerule.binning import bin_series
from onerule.config import OneRSettings, get_settings


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Clear the settings cache and any ONERULE_* variables around each test.

    The working directory moves to an empty folder so no .env file is read.

    Args:
        monkeypatch (pytest.MonkeyPatch): Pytest environment patcher.
        tmp_path (Path): Empty per-test directory.

    Yields:
        None: Control returns to the test.
    """
    for name in ("NBINS", "BIN_METHOD", "OPTBIN_METHOD", "TIES_METHOD", "MISSING", "MAXLEVELS"):
        monkeypatch.delenv(f"ONERULE_{name}", raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestOneRSettings:
    """Tests for OneRSettings."""

    def test_defaults(self) -> None:
        """Without overrides the documented defaults apply."""
        # Act
        settings = get_settings()

        # Assert
        with check:
            assert settings.nbins == 5
        with check:
            assert settings.bin_method == "length"
        with check:
            assert settings.optbin_method == "logreg"
        with check:
            assert settings.ties_method == "first"
        with check:
            assert settings.missing == "omit"
        with check:
            assert settings.maxlevels == 20

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """ONERULE_* variables override the defaults.

        Args:
            monkeypatch (pytest.MonkeyPatch): Pytest environment patcher.
        """
        # Arrange
        monkeypatch.setenv("ONERULE_NBINS", "3")
        monkeypatch.setenv("ONERULE_BIN_METHOD", "content")

        # Act
        settings = get_settings()

        # Assert
        with check:
            assert settings.nbins == 3
        with check:
            assert settings.bin_method == "content"

    def test_settings_are_used_as_function_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Binning without an explicit bin count uses the configured one.

        Args:
            monkeypatch (pytest.MonkeyPatch): Pytest environment patcher.
        """
        # Arrange
        monkeypatch.setenv("ONERULE_NBINS", "2")

        # Act
        result = bin_series(pl.Series("x", np.arange(10.0)))

        # Assert
        assert result.boundaries is not None and result.boundaries.nbins == 2

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("nbins", 1),
            ("maxlevels", 2),
            ("ties_method", "random"),
            ("missing", "impute"),
        ],
    )
    def test_invalid_values_raise(self, field: str, value: object) -> None:
        """Out-of-range numbers and unknown policy names are rejected.

        Args:
            field (str): Settings field to set.
            value (object): Invalid value.
        """
        with pytest.raises(ValidationError):
            OneRSettings(**{field: value})

    def test_settings_are_cached(self) -> None:
        """Repeated calls return the same settings object until the cache is cleared."""
        with check:
            assert get_settings() is get_settings()


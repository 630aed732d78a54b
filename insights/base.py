"""
insights/base.py

Abstract base interface for insight detectors.

Every detector is a pure evaluation over one :class:`InsightContext`: it
never fetches, persists or mutates anything. Returning ``None`` means "no
actionable signal", which is not an error.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import fields, replace
from typing import Any, TypeVar

from insights.context import InsightContext

# A detector candidate is free-form until the normalizer validates it.
Candidate = dict[str, Any]

OptionsT = TypeVar("OptionsT")

SEVERITIES: tuple[str, ...] = ("high", "medium", "low")


class BaseDetector(ABC):
    """Abstract base class for detectors.

    Subclasses set :attr:`type` to the insight type they emit and implement
    :meth:`evaluate`.
    """

    type: str = ""

    @abstractmethod
    def evaluate(
        self,
        context: InsightContext,
        options: Mapping[str, Any] | None = None,
    ) -> Candidate | None:
        """Evaluate *context* and return a candidate, or ``None``.

        Args:
            context: Canonical scan snapshot.
            options: Optional threshold overrides keyed by the detector's
                     options field names. Unknown keys are ignored.

        Returns:
            A raw candidate dict, or ``None`` when there is no signal.
        """
        raise NotImplementedError("Subclasses must implement evaluate()")


def merge_options(defaults: OptionsT, overrides: Mapping[str, Any] | None) -> OptionsT:
    """Return *defaults* with the known keys of *overrides* replaced."""
    if not overrides:
        return defaults
    known = {f.name for f in fields(defaults)}  # type: ignore[arg-type]
    changes = {key: value for key, value in overrides.items() if key in known}
    return replace(defaults, **changes) if changes else defaults  # type: ignore[type-var]


def indicator(
    key: str,
    label: str,
    status: str,
    confidence: str,
    evidence: str,
) -> dict[str, str]:
    """Build one explanatory indicator record attached to a candidate."""
    return {
        "key": key,
        "label": label,
        "status": status,
        "confidence": confidence,
        "evidence": evidence,
    }

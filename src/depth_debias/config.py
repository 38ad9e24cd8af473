from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from .debiaser import (
    Debiaser,
    DebiasMethod,
    DiagnosticSink,
    check_positive,
    check_window,
    make_debiaser,
)
from .errors import ConfigurationError


@dataclass(frozen=True)
class DebiasConfig:
    """Settings for one debiasing run.

    Only the option belonging to `method` is required: `window` for
    moving-median, `score_window` for chunked-ratio, `min_variance_pct` for
    variance-truncation.
    """

    method: str = DebiasMethod.MOVING_MEDIAN.value
    window: int | None = None
    score_window: float | None = None
    min_variance_pct: float | None = None

    @property
    def debias_method(self) -> DebiasMethod:
        try:
            return DebiasMethod(self.method)
        except ValueError as e:
            choices = ", ".join(m.value for m in DebiasMethod)
            raise ConfigurationError(
                f"Unknown method={self.method!r}; expected one of: {choices}"
            ) from e

    def validate(self) -> "DebiasConfig":
        m = self.debias_method
        if m is DebiasMethod.MOVING_MEDIAN:
            check_window(self.window)
        elif m is DebiasMethod.CHUNKED_RATIO:
            check_positive(self.score_window, "score_window")
        elif self.min_variance_pct is None:
            raise ConfigurationError("variance-truncation requires min_variance_pct")
        elif isinstance(self.min_variance_pct, (bool, str)) or not 0 <= float(self.min_variance_pct) <= 100:
            raise ConfigurationError("min_variance_pct must be a percentage in [0, 100]")
        return self

    def build(self, vals=None, *, sink: DiagnosticSink | None = None) -> Debiaser:
        self.validate()
        return make_debiaser(
            self.debias_method,
            vals=vals,
            window=self.window,
            score_window=self.score_window,
            min_variance_pct=self.min_variance_pct,
            sink=sink,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "DebiasConfig":
        known = {"method", "window", "score_window", "min_variance_pct"}
        unknown = set(d) - known
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**d)

    @classmethod
    def from_json(cls, path: str | Path) -> "DebiasConfig":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(str(path))
        obj = json.loads(path.read_text())
        if not isinstance(obj, dict):
            raise ConfigurationError(f"Expected a JSON object in {path}")
        return cls.from_dict(obj)

"""Ordered redaction pipelines."""

from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import Any

from .exceptions import ConfigurationError
from .redaction import RedactionRule, Redactor, redact

Stage = RedactionRule | Redactor


class RedactionPipeline:
    """An ordered list of redaction stages applied one after another.

    Each stage receives the previous stage's output. Stages are rules,
    redactors, or other pipelines, so pipelines compose. The input passed to
    ``process`` is never modified.
    """

    def __init__(self, redactors: Iterable[Stage] = ()):
        self._stages: list[Stage] = []
        self.pipes(redactors)

    def pipe(self, stage: Stage) -> RedactionPipeline:
        """Append a stage.

        Raises:
            ConfigurationError: If ``stage`` is neither a rule nor a redactor
        """
        if isinstance(stage, type) or not isinstance(stage, (RedactionRule, Redactor)):
            raise ConfigurationError(
                f"Unsupported pipeline stage {stage!r}; resolve identifiers through a RedactorRegistry"
            )
        self._stages.append(stage)
        return self

    def pipes(self, stages: Iterable[Stage]) -> RedactionPipeline:
        for stage in stages:
            self.pipe(stage)
        return self

    def process(self, data: Any) -> Any:
        """Run ``data`` through every stage and return the result."""
        result = copy.deepcopy(data)
        for stage in self._stages:
            if isinstance(stage, RedactionRule):
                result = redact(result, [stage])
            else:
                result = stage.redact(result)
        return result

    redact = process

    @property
    def redactors(self) -> list[Stage]:
        return list(self._stages)

    def clear(self) -> RedactionPipeline:
        self._stages = []
        return self

    def __len__(self) -> int:
        return len(self._stages)

    def __repr__(self) -> str:
        return f"RedactionPipeline(stages={len(self._stages)})"

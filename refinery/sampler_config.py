"""Sampler configuration structures and their validation rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class ConfigValidationError(ValueError):
    """Raised when a sampler configuration breaks one of its rules."""


def _require_at_least_one(name: str, value: int) -> None:
    if value < 1:
        raise ConfigValidationError(f"{name} must be at least 1, got {value}")


def _require_present(name: str, value: Any) -> None:
    if value is None:
        raise ConfigValidationError(f"{name} is required")


def _require_with(name: str, value: str, flag_name: str, flag: bool) -> None:
    if flag and not value:
        raise ConfigValidationError(f"{name} is required when {flag_name} is set")


@dataclass
class DeterministicSamplerConfig:
    sample_rate: int = 0

    def validate(self) -> None:
        _require_at_least_one("sample_rate", self.sample_rate)


@dataclass
class DynamicSamplerConfig:
    sample_rate: int = 0
    clear_frequency_sec: int = 0
    field_list: list[str] | None = None
    use_trace_length: bool = False
    add_sample_rate_key_to_trace: bool = False
    add_sample_rate_key_to_trace_field: str = ""

    def validate(self) -> None:
        _require_at_least_one("sample_rate", self.sample_rate)
        _require_present("field_list", self.field_list)
        _require_with(
            "add_sample_rate_key_to_trace_field",
            self.add_sample_rate_key_to_trace_field,
            "add_sample_rate_key_to_trace",
            self.add_sample_rate_key_to_trace,
        )


@dataclass
class EMADynamicSamplerConfig:
    goal_sample_rate: int = 0
    adjustment_interval: int = 0
    weight: float = 0.0
    age_out_value: float = 0.0
    burst_multiple: float = 0.0
    burst_detection_delay: int = 0
    max_keys: int = 0
    field_list: list[str] | None = None
    use_trace_length: bool = False
    add_sample_rate_key_to_trace: bool = False
    add_sample_rate_key_to_trace_field: str = ""

    def validate(self) -> None:
        _require_at_least_one("goal_sample_rate", self.goal_sample_rate)
        if not 0 < self.weight < 1:
            raise ConfigValidationError(
                f"weight must be between 0 and 1 exclusive, got {self.weight}"
            )
        _require_present("field_list", self.field_list)
        _require_with(
            "add_sample_rate_key_to_trace_field",
            self.add_sample_rate_key_to_trace_field,
            "add_sample_rate_key_to_trace",
            self.add_sample_rate_key_to_trace,
        )


@dataclass
class TotalThroughputSamplerConfig:
    goal_throughput_per_sec: int = 0
    clear_frequency_sec: int = 0
    field_list: list[str] | None = None
    use_trace_length: bool = False
    add_sample_rate_key_to_trace: bool = False
    add_sample_rate_key_to_trace_field: str = ""

    def validate(self) -> None:
        _require_at_least_one("goal_throughput_per_sec", self.goal_throughput_per_sec)
        _require_present("field_list", self.field_list)
        _require_with(
            "add_sample_rate_key_to_trace_field",
            self.add_sample_rate_key_to_trace_field,
            "add_sample_rate_key_to_trace",
            self.add_sample_rate_key_to_trace,
        )


@dataclass
class RulesBasedSamplerCondition:
    field: str = ""
    operator: str = ""
    value: Any = None

    def __str__(self) -> str:
        return f"{{Field:{self.field} Operator:{self.operator} Value:{self.value}}}"


@dataclass
class RulesBasedDownstreamSampler:
    dynamic_sampler: DynamicSamplerConfig | None = None
    ema_dynamic_sampler: EMADynamicSamplerConfig | None = None
    total_throughput_sampler: TotalThroughputSamplerConfig | None = None

    def _validate(self) -> None:
        for sampler in (
            self.dynamic_sampler,
            self.ema_dynamic_sampler,
            self.total_throughput_sampler,
        ):
            if sampler is not None:
                sampler.validate()


_RULE_SCOPES = ("span", "trace")


@dataclass
class RulesBasedSamplerRule:
    name: str = ""
    sample_rate: int = 0
    sampler: RulesBasedDownstreamSampler | None = None
    drop: bool = False
    scope: str = ""
    condition: list[RulesBasedSamplerCondition] = field(default_factory=list)

    def validate(self) -> None:
        if self.scope not in _RULE_SCOPES:
            raise ConfigValidationError(
                f"scope must be one of {', '.join(_RULE_SCOPES)}, got {self.scope!r}"
            )
        if self.sampler is not None:
            self.sampler._validate()

    def __str__(self) -> str:
        conditions = " ".join(str(c) for c in self.condition)
        return (
            f"{{Name:{self.name} SampleRate:{self.sample_rate} Sampler:{self.sampler} "
            f"Drop:{str(self.drop).lower()} Scope:{self.scope} Condition:[{conditions}]}}"
        )


@dataclass
class RulesBasedSamplerConfig:
    rule: list[RulesBasedSamplerRule] = field(default_factory=list)
    check_nested_fields: bool = False

    def __str__(self) -> str:
        rules = " ".join(str(r) for r in self.rule)
        return f"{{Rule:[{rules}] CheckNestedFields:{str(self.check_nested_fields).lower()}}}"
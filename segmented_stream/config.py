"""
Segmented Stream - Configuration.

============================================================
PURPOSE
============================================================
Bounds the engine enforces at stream creation.

- max_fee: upper bound for protocol and broker fee rates
- max_segment_count: keeps the segment walk economical
- require_future_end_time: reject curves already over

Rates are written as decimal strings ("0.1" = 10%) and parsed
through Decimal, never through float.

============================================================
SOURCES
============================================================
1. Defaults / presets (get_default_config, ...)
2. Dictionary (load_config_from_dict)
3. YAML file (load_config_from_yaml)
4. Environment, with .env support (load_config_from_env)

============================================================
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError
from .fixed_point import UD60x18


ENV_PREFIX = "SEGMENTED_STREAM_"

MAX_FEE_CEILING = Decimal("0.5")
"""
max_fee must stay strictly below this.

Two fees of at most max_fee each then always leave a non-zero
deposit, which is what makes FeeInvariantViolation a defect.
"""


@dataclass
class StreamEngineConfig:
    """
    Engine configuration.

    All values have conservative defaults.
    """

    max_fee: Decimal = Decimal("0.1")
    """
    Maximum protocol or broker fee rate.
    Default: 10%
    """

    max_segment_count: int = 300
    """
    Maximum number of segments per stream.
    Every streamed-amount query may walk all of them.
    """

    require_future_end_time: bool = True
    """
    Whether creation rejects curves that end at or before `now`.
    """

    def __post_init__(self):
        if not isinstance(self.max_fee, Decimal):
            self.max_fee = _parse_rate("max_fee", self.max_fee)

    @property
    def max_fee_rate(self) -> UD60x18:
        return UD60x18.from_decimal(self.max_fee)

    def validate(self) -> "StreamEngineConfig":
        """Raise ConfigurationError on the first invalid value."""
        if not Decimal(0) <= self.max_fee < MAX_FEE_CEILING:
            raise ConfigurationError(
                "max_fee", self.max_fee, f"must be in [0, {MAX_FEE_CEILING})"
            )
        if isinstance(self.max_segment_count, bool) or not isinstance(self.max_segment_count, int):
            raise ConfigurationError(
                "max_segment_count", self.max_segment_count, "must be an integer"
            )
        if self.max_segment_count < 1:
            raise ConfigurationError(
                "max_segment_count", self.max_segment_count, "must be at least 1"
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_fee": str(self.max_fee),
            "max_segment_count": self.max_segment_count,
            "require_future_end_time": self.require_future_end_time,
        }


def _parse_rate(key: str, value: Any) -> Decimal:
    if isinstance(value, float):
        # floats carry binary noise; go through their shortest repr
        value = repr(value)
    try:
        rate = Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(key, value, "not a decimal number")
    if not rate.is_finite():
        raise ConfigurationError(key, value, "not a finite number")
    return rate


def _parse_int(key: str, value: Any) -> int:
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigurationError(key, value, "not an integer")


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(key, value, "not a boolean")


# ============================================================
# PRESET FACTORIES
# ============================================================

def get_default_config() -> StreamEngineConfig:
    """Default configuration suitable for production."""
    return StreamEngineConfig()


def get_strict_config() -> StreamEngineConfig:
    """Lower fee ceiling and shorter curves."""
    config = StreamEngineConfig()
    config.max_fee = Decimal("0.05")
    config.max_segment_count = 100
    return config


def get_testing_config() -> StreamEngineConfig:
    """
    Relaxed configuration for tests that replay historical times.
    NOT FOR PRODUCTION.
    """
    config = StreamEngineConfig()
    config.require_future_end_time = False
    return config


# ============================================================
# LOADERS
# ============================================================

def load_config_from_dict(data: Dict[str, Any]) -> StreamEngineConfig:
    """
    Load configuration from a dictionary.

    Missing keys keep their defaults. A nested "segmented_stream"
    section is accepted as well as a flat mapping.
    """
    if "segmented_stream" in data and isinstance(data["segmented_stream"], dict):
        data = data["segmented_stream"]

    config = get_default_config()

    if "max_fee" in data:
        config.max_fee = _parse_rate("max_fee", data["max_fee"])
    if "max_segment_count" in data:
        config.max_segment_count = _parse_int("max_segment_count", data["max_segment_count"])
    if "require_future_end_time" in data:
        config.require_future_end_time = _parse_bool(
            "require_future_end_time", data["require_future_end_time"]
        )

    return config.validate()


def load_config_from_yaml(path: Union[str, Path]) -> StreamEngineConfig:
    """Load configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError("path", str(path), "file does not exist")

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError("path", str(path), "top level must be a mapping")

    return load_config_from_dict(data)


def load_config_from_env(dotenv_path: Optional[Union[str, Path]] = None) -> StreamEngineConfig:
    """
    Load configuration from environment variables.

    Reads SEGMENTED_STREAM_MAX_FEE, SEGMENTED_STREAM_MAX_SEGMENT_COUNT
    and SEGMENTED_STREAM_REQUIRE_FUTURE_END_TIME, after loading a
    .env file if one is present. Variables already set in the
    process environment win over the file.
    """
    load_dotenv(dotenv_path=dotenv_path)

    data: Dict[str, Any] = {}
    for key in ("max_fee", "max_segment_count", "require_future_end_time"):
        value = os.getenv(f"{ENV_PREFIX}{key.upper()}")
        if value is not None:
            data[key] = value

    return load_config_from_dict(data)

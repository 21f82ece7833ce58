import datetime
import re
from typing import Any, Dict, Optional, Union

ON_SUBMIT = "onSubmit"
ON_BLUR = "onBlur"
ON_CHANGE = "onChange"

TRIGGERS = (ON_SUBMIT, ON_BLUR, ON_CHANGE)

_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(millis|millisecond|milliseconds|ms|seconds|second|s)?\s*$")


class ValidationMode:
    """Normalized validation mode: when to validate, how long to wait, whether to submit."""
    __slots__ = ('trigger', 'debounce_ms', 'auto_submit')

    def __init__(self, trigger: str = ON_SUBMIT, debounce_ms: Optional[int] = None, auto_submit: bool = False):
        self.trigger = trigger
        self.debounce_ms = debounce_ms
        self.auto_submit = auto_submit

    @property
    def validates_on_change(self) -> bool:
        return self.trigger == ON_CHANGE

    @property
    def validates_on_blur(self) -> bool:
        return self.trigger == ON_BLUR

    def __eq__(self, other):
        if not isinstance(other, ValidationMode):
            return NotImplemented
        return (self.trigger, self.debounce_ms, self.auto_submit) == (other.trigger, other.debounce_ms, other.auto_submit)

    def __repr__(self):
        return f"ValidationMode(trigger={self.trigger!r}, debounce_ms={self.debounce_ms!r}, auto_submit={self.auto_submit!r})"


def parse_duration_ms(value: Union[int, float, str, datetime.timedelta, None]) -> Optional[int]:
    """Milliseconds from a number, a timedelta, or a string such as ``"300 millis"``."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid debounce duration: {value!r}")
    if isinstance(value, datetime.timedelta):
        ms = value.total_seconds() * 1000
    elif isinstance(value, (int, float)):
        ms = value
    elif isinstance(value, str):
        match = _DURATION.match(value)
        if match is None:
            raise ValueError(f"Invalid debounce duration: {value!r}")
        amount, unit = match.groups()
        ms = float(amount) * (1000 if unit in ("s", "second", "seconds") else 1)
    else:
        raise ValueError(f"Invalid debounce duration: {value!r}")

    if ms < 0:
        raise ValueError(f"Debounce duration must not be negative: {value!r}")
    return int(round(ms))


def _options(config: Dict[str, Any], trigger: str) -> Dict[str, Any]:
    options = config[trigger]
    if options is None:
        return {}
    if not isinstance(options, dict):
        raise ValueError(f"Options for '{trigger}' must be a dict, got {options!r}")
    return options


def _auto_submit(options: Dict[str, Any]) -> bool:
    return bool(options.get("autoSubmit", options.get("auto_submit", False)))


def parse_mode(config: Union[str, Dict[str, Any], ValidationMode, None] = None) -> ValidationMode:
    """
    Normalizes a mode configuration.

    Accepted shapes: None (same as "onSubmit"), "onSubmit", "onBlur",
    "onChange", ``{"onChange": {"debounce": ..., "autoSubmit": ...}}`` and
    ``{"onBlur": {"autoSubmit": ...}}``.
    """
    if config is None:
        return ValidationMode(ON_SUBMIT)
    if isinstance(config, ValidationMode):
        return config
    if isinstance(config, str):
        if config not in TRIGGERS:
            raise ValueError(f"Unknown validation mode: {config!r}")
        return ValidationMode(config)
    if isinstance(config, dict) and len(config) == 1:
        if ON_CHANGE in config:
            options = _options(config, ON_CHANGE)
            return ValidationMode(ON_CHANGE, parse_duration_ms(options.get("debounce")), _auto_submit(options))
        if ON_BLUR in config:
            options = _options(config, ON_BLUR)
            return ValidationMode(ON_BLUR, None, _auto_submit(options))
    raise ValueError(f"Unknown validation mode: {config!r}")


def should_show_error(mode: ValidationMode, is_dirty: bool, is_touched: bool, has_submitted: bool) -> bool:
    """Whether a field's error is visible under ``mode``."""
    if has_submitted:
        return True
    if mode.trigger == ON_CHANGE:
        return is_dirty
    if mode.trigger == ON_BLUR:
        return is_touched
    return False

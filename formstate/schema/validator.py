import math
import re
from typing import Callable, Optional, Union

from formstate.schema.ast import Number, Refinement, Schema, String, Transform


Check = Callable[[Schema], Schema]


class Validator:
    """
    Provides a set of built-in, pipeable checks.

    Each method returns a function from schema to refined schema, so checks
    compose with ``Schema.pipe``::

        String().pipe(Validator.min_length(8), Validator.pattern(r"\\d", "Needs a digit"))
    """

    @staticmethod
    def min_length(length: int, error_message: str = None) -> Check:
        """Checks for a minimum string length."""
        message = error_message or f"Must be at least {length} characters long."
        return lambda schema: Refinement(schema, lambda value: len(value) >= length, message,
                                         f"a string at least {length} character(s) long")

    @staticmethod
    def max_length(length: int, error_message: str = None) -> Check:
        """Checks for a maximum string length."""
        message = error_message or f"Must be at most {length} characters long."
        return lambda schema: Refinement(schema, lambda value: len(value) <= length, message,
                                         f"a string at most {length} character(s) long")

    @staticmethod
    def non_empty_string(error_message: str = None) -> Check:
        return Validator.min_length(1, error_message or "This field cannot be empty.")

    @staticmethod
    def pattern(regex: Union[str, re.Pattern], error_message: str = None) -> Check:
        """Checks that the value matches ``regex`` (searched, not anchored)."""
        compiled = re.compile(regex) if isinstance(regex, str) else regex
        message = error_message or "Invalid format."
        return lambda schema: Refinement(schema, lambda value: compiled.search(value) is not None, message,
                                         f"a string matching the pattern {compiled.pattern}")

    @staticmethod
    def email(error_message: str = None) -> Check:
        email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
        return Validator.pattern(email_pattern, error_message or "Must be a valid email address.")

    @staticmethod
    def url(error_message: str = None) -> Check:
        url_pattern = r"^https?://(?:www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b(?:[-a-zA-Z0-9()@:%_+.~#?&/=]*)$"
        return Validator.pattern(url_pattern, error_message or "Must be a valid URL.")

    @staticmethod
    def trimmed(error_message: str = None) -> Check:
        """Checks that the value has no leading or trailing whitespace."""
        message = error_message or "Must not have leading or trailing whitespace."
        return lambda schema: Refinement(schema, lambda value: value == value.strip(), message, "a trimmed string")

    @staticmethod
    def greater_than_or_equal_to(minimum: Union[int, float], error_message: str = None) -> Check:
        message = error_message or f"Must be greater than or equal to {minimum}."
        return lambda schema: Refinement(schema, lambda value: value >= minimum, message,
                                         f"a number greater than or equal to {minimum}")

    @staticmethod
    def less_than_or_equal_to(maximum: Union[int, float], error_message: str = None) -> Check:
        message = error_message or f"Must be less than or equal to {maximum}."
        return lambda schema: Refinement(schema, lambda value: value <= maximum, message,
                                         f"a number less than or equal to {maximum}")

    @staticmethod
    def between(minimum: Union[int, float], maximum: Union[int, float], error_message: str = None) -> Check:
        message = error_message or f"Must be between {minimum} and {maximum}."
        return lambda schema: Refinement(schema, lambda value: minimum <= value <= maximum, message,
                                         f"a number between {minimum} and {maximum}")

    @staticmethod
    def integer(error_message: str = None) -> Check:
        message = error_message or "Must be a whole number."
        return lambda schema: Refinement(schema, lambda value: float(value).is_integer(), message, "an integer")


def trim() -> Check:
    """Transforms a string into its stripped form."""
    return lambda schema: Transform(schema, String(), str.strip)


def _parse_number(value: str):
    text = value.strip()
    if not text:
        raise ValueError("Must be a number.")
    try:
        number = int(text)
    except ValueError:
        number = float(text)
        if math.isnan(number):
            raise ValueError("Must be a number.")
    return number


class NumberFromString(Transform):
    """Decodes a string such as ``"42"`` or ``"1.5"`` into a number."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(String(), Number(), _parse_number, message=message or "Must be a number.")

    def describe(self) -> str:
        return "NumberFromString"


min_length = Validator.min_length
max_length = Validator.max_length
non_empty_string = Validator.non_empty_string
pattern = Validator.pattern
email = Validator.email
url = Validator.url
trimmed = Validator.trimmed
greater_than_or_equal_to = Validator.greater_than_or_equal_to
less_than_or_equal_to = Validator.less_than_or_equal_to
between = Validator.between


def number_from_string(message: Optional[str] = None) -> NumberFromString:
    return NumberFromString(message)

"""Provider kinds and their typed argument schemas."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union
from urllib.parse import urlsplit

from cadence.errors import ProviderArgumentError

ArgumentValue = Union[str, bool]


class ArgumentType(str, Enum):
    STRING = "string"
    BOOLEAN = "boolean"

    def accepts(self, value: Any) -> bool:
        if self is ArgumentType.BOOLEAN:
            return isinstance(value, bool)
        return isinstance(value, str)


@dataclass(slots=True, frozen=True)
class ProviderArgument:
    """Declarative description of one configuration value of a provider."""

    key: str
    type: ArgumentType
    name: str
    required: bool = False
    hidden: bool = False
    default: ArgumentValue | None = None
    validator: Callable[[ArgumentValue], str | None] | None = None

    def __post_init__(self) -> None:
        if self.default is not None and not self.type.accepts(self.default):
            raise ValueError(f"Default for {self.key!r} does not match {self.type.value}")

    def validate(self, value: ArgumentValue | None) -> ArgumentValue | None:
        """Return the effective value or raise ``ProviderArgumentError``."""

        if value is None:
            value = self.default
        if value is None:
            if self.required:
                raise ProviderArgumentError(self.key, "required argument is missing")
            return None
        if not self.type.accepts(value):
            raise ProviderArgumentError(
                self.key, f"expected {self.type.value}, got {type(value).__name__}"
            )
        if self.type is ArgumentType.STRING and self.required and not str(value).strip():
            raise ProviderArgumentError(self.key, "required argument is empty")
        if self.validator is not None:
            problem = self.validator(value)
            if problem:
                raise ProviderArgumentError(self.key, problem)
        return value


def _validate_server_url(value: ArgumentValue) -> str | None:
    parsed = urlsplit(str(value).strip())
    if parsed.scheme not in {"http", "https"}:
        return "server must use http or https"
    if not parsed.netloc:
        return "server must include a host"
    return None


SUBSONIC_SERVER = ProviderArgument(
    key="server",
    type=ArgumentType.STRING,
    name="Server",
    required=True,
    validator=_validate_server_url,
)
SUBSONIC_USERNAME = ProviderArgument(
    key="username",
    type=ArgumentType.STRING,
    name="Username",
    required=True,
)
SUBSONIC_PASSWORD = ProviderArgument(
    key="password",
    type=ArgumentType.STRING,
    name="Password",
    required=True,
    hidden=True,
)
SUBSONIC_USE_LEGACY_AUTHENTICATION = ProviderArgument(
    key="use_legacy_authentication",
    type=ArgumentType.BOOLEAN,
    name="Use legacy authentication",
    required=True,
    default=False,
)


class ProviderType(str, Enum):
    LOCAL = "local"
    SUBSONIC = "subsonic"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def arguments(self) -> tuple[ProviderArgument, ...]:
        return _ARGUMENTS[self]


_DISPLAY_NAMES: dict[ProviderType, str] = {
    ProviderType.LOCAL: "Local",
    ProviderType.SUBSONIC: "Subsonic",
}

_ARGUMENTS: dict[ProviderType, tuple[ProviderArgument, ...]] = {
    ProviderType.LOCAL: (),
    ProviderType.SUBSONIC: (
        SUBSONIC_SERVER,
        SUBSONIC_USERNAME,
        SUBSONIC_PASSWORD,
        SUBSONIC_USE_LEGACY_AUTHENTICATION,
    ),
}


@dataclass(slots=True, frozen=True)
class Provider:
    type: ProviderType
    type_id: int
    name: str

    def same_identity(self, other: Any) -> bool:
        return (
            isinstance(other, Provider)
            and self.type == other.type
            and self.type_id == other.type_id
        )

    def same_content(self, other: Any) -> bool:
        return isinstance(other, Provider) and self.name == other.name


def validate_arguments(
    provider_type: ProviderType, arguments: Mapping[str, Any]
) -> dict[str, ArgumentValue]:
    """Check ``arguments`` against the provider schema and fill in defaults."""

    unknown = set(arguments) - {argument.key for argument in provider_type.arguments}
    if unknown:
        key = sorted(unknown)[0]
        raise ProviderArgumentError(key, f"unknown argument for {provider_type.value}")
    validated: dict[str, ArgumentValue] = {}
    for argument in provider_type.arguments:
        value = argument.validate(arguments.get(argument.key))
        if value is not None:
            validated[argument.key] = value
    return validated


def get_argument(
    arguments: Mapping[str, Any], argument: ProviderArgument
) -> ArgumentValue | None:
    value = arguments.get(argument.key, argument.default)
    if value is None:
        return None
    if not argument.type.accepts(value):
        raise ProviderArgumentError(
            argument.key, f"expected {argument.type.value}, got {type(value).__name__}"
        )
    return value


def require_argument(arguments: Mapping[str, Any], argument: ProviderArgument) -> ArgumentValue:
    value = get_argument(arguments, argument)
    if value is None:
        raise ProviderArgumentError(argument.key, "required argument is missing")
    return value


__all__ = [
    "ArgumentType",
    "ArgumentValue",
    "Provider",
    "ProviderArgument",
    "ProviderType",
    "SUBSONIC_PASSWORD",
    "SUBSONIC_SERVER",
    "SUBSONIC_USERNAME",
    "SUBSONIC_USE_LEGACY_AUTHENTICATION",
    "get_argument",
    "require_argument",
    "validate_arguments",
]

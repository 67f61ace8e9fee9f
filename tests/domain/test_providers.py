from __future__ import annotations

import pytest

from cadence.domain.providers import (
    SUBSONIC_PASSWORD,
    SUBSONIC_SERVER,
    Provider,
    ProviderType,
    require_argument,
    validate_arguments,
)
from cadence.errors import ProviderArgumentError


def _arguments(**overrides: object) -> dict[str, object]:
    arguments: dict[str, object] = {
        "server": "https://music.example.com",
        "username": "alice",
        "password": "sesame",
    }
    arguments.update(overrides)
    return arguments


def test_subsonic_schema() -> None:
    keys = [argument.key for argument in ProviderType.SUBSONIC.arguments]

    assert keys == ["server", "username", "password", "use_legacy_authentication"]
    assert SUBSONIC_PASSWORD.hidden
    assert ProviderType.LOCAL.arguments == ()
    assert ProviderType.SUBSONIC.display_name == "Subsonic"


def test_validate_fills_defaults() -> None:
    validated = validate_arguments(ProviderType.SUBSONIC, _arguments())

    assert validated["use_legacy_authentication"] is False
    assert validated["server"] == "https://music.example.com"


@pytest.mark.parametrize(
    ("overrides", "key"),
    [
        ({"server": "ftp://music.example.com"}, "server"),
        ({"server": "https://"}, "server"),
        ({"username": None}, "username"),
        ({"password": "   "}, "password"),
        ({"use_legacy_authentication": "yes"}, "use_legacy_authentication"),
        ({"token": "abc"}, "token"),
    ],
)
def test_validate_rejects_bad_arguments(overrides: dict[str, object], key: str) -> None:
    with pytest.raises(ProviderArgumentError) as excinfo:
        validate_arguments(ProviderType.SUBSONIC, _arguments(**overrides))

    assert excinfo.value.key == key


def test_require_argument_reports_missing_values() -> None:
    with pytest.raises(ProviderArgumentError):
        require_argument({}, SUBSONIC_SERVER)
    assert require_argument(_arguments(), SUBSONIC_SERVER) == "https://music.example.com"


def test_provider_identity_and_content() -> None:
    provider = Provider(ProviderType.SUBSONIC, 3, "Home")

    assert provider.same_identity(Provider(ProviderType.SUBSONIC, 3, "Renamed"))
    assert not provider.same_identity(Provider(ProviderType.LOCAL, 3, "Home"))
    assert not provider.same_content(Provider(ProviderType.SUBSONIC, 3, "Renamed"))

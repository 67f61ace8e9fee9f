from __future__ import annotations

import pytest

from cadence.domain.status import Error, ErrorType, Loading, Success, is_terminal, map_status


@pytest.mark.parametrize("progress", [None, 0, 50, 100])
def test_loading_accepts_percentages(progress: int | None) -> None:
    assert Loading(progress).progress == progress


@pytest.mark.parametrize("progress", [-1, 101])
def test_loading_rejects_out_of_range_progress(progress: int) -> None:
    with pytest.raises(ValueError):
        Loading(progress)


def test_map_status_only_touches_success() -> None:
    assert map_status(Success(2), lambda value: value * 3) == Success(6)
    assert map_status(Loading(), lambda value: value * 3) == Loading()
    assert map_status(Error(ErrorType.IO), lambda value: value * 3) == Error(ErrorType.IO)


def test_terminal_states() -> None:
    assert is_terminal(Success([]))
    assert is_terminal(Error(ErrorType.NOT_FOUND))
    assert not is_terminal(Loading(10))

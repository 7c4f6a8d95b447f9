from types import SimpleNamespace

import pytest

from perfect_slate.utils.lines import (
    apply_no_tie_line,
    format_line,
    pick_display_text,
    popularity_split,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (4, 4.5),
        (-2, -1.5),
        (0, 0.5),
        (8.0, 8.5),
        (3.5, 3.5),
        (-7.5, -7.5),
    ],
)
def test_no_tie_line(value, expected):
    assert apply_no_tie_line(value) == expected


def test_no_tie_line_ignores_side():
    assert apply_no_tie_line(9, is_under=True) == 9.5
    assert apply_no_tie_line(9, is_under=False) == 9.5


def test_no_tie_line_none():
    assert apply_no_tie_line(None) is None


def test_adjusted_lines_are_never_whole():
    for raw in range(-20, 21):
        assert not apply_no_tie_line(raw).is_integer()


def test_format_line():
    assert format_line(3.5) == "+3.5"
    assert format_line(-1.5) == "-1.5"
    assert format_line(8.5, signed=False) == "8.5"
    assert format_line(None) == "-"


def test_pick_display_text():
    game = SimpleNamespace(
        home_team="New York Yankees",
        away_team="Boston Red Sox",
        home_team_short="NYY",
        away_team_short="BOS",
    )
    home = SimpleNamespace(pick_type="spread", selection="home", line_value=-1.5)
    away = SimpleNamespace(pick_type="spread", selection="away", line_value=1.5)
    under = SimpleNamespace(pick_type="total", selection="under", line_value=8.5)

    assert pick_display_text(home, game) == "NYY -1.5"
    assert pick_display_text(away, game) == "BOS +1.5"
    assert pick_display_text(under, game) == "Under 8.5"


def test_popularity_split_rounds_half_up():
    assert popularity_split(1, 7) == (13, 88)
    assert popularity_split(3, 1) == (75, 25)


def test_popularity_split_without_selections():
    assert popularity_split(0, 0) == (50, 50)
    assert popularity_split(None, None) == (50, 50)

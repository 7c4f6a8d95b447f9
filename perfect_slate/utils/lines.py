"""
Betting line helpers: the no-tie rule, display text and popularity split.
"""


def apply_no_tie_line(value, is_under=False):
    """
    Nudge whole-number lines by half a point so a pick can never push.

    Whole numbers always move up by 0.5 regardless of side; ``is_under`` is
    accepted for callers that track the side but does not change the result.
    Fractional lines are returned unchanged.

        >>> apply_no_tie_line(4)
        4.5
        >>> apply_no_tie_line(-2)
        -1.5
        >>> apply_no_tie_line(3.5)
        3.5
    """
    if value is None:
        return None
    value = float(value)
    if value.is_integer():
        return value + 0.5
    return value


def format_line(value, signed=True):
    """Format a line for display: '+3.5', '-1.5', '0', or '8.5' unsigned"""
    if value is None:
        return "-"
    value = float(value)
    text = f"{value:g}"
    if signed and value > 0:
        return f"+{text}"
    return text


def pick_display_text(pick, game):
    """Human readable label for a pick option, e.g. 'NYY -1.5' or 'Over 8.5'"""
    if pick.pick_type == "spread":
        if pick.selection == "home":
            team = game.home_team_short or game.home_team
        else:
            team = game.away_team_short or game.away_team
        return f"{team} {format_line(pick.line_value)}"

    return f"{pick.selection.capitalize()} {format_line(pick.line_value, signed=False)}"


def popularity_split(first_count, second_count):
    """Rounded selection percentages for the two sides of a market"""
    first_count = first_count or 0
    second_count = second_count or 0
    total = first_count + second_count
    if total <= 0:
        return 50, 50
    # Half-up rounding, so 12.5% shows as 13%
    return (
        int(first_count * 100 / total + 0.5),
        int(second_count * 100 / total + 0.5),
    )

import re
from datetime import datetime, timezone

from perfect_slate import db

# Fallback abbreviations used when a team has no row in the teams table
DEFAULT_ABBREVIATIONS = {
    "MLB": {
        "Arizona Diamondbacks": "ARI",
        "Atlanta Braves": "ATL",
        "Baltimore Orioles": "BAL",
        "Boston Red Sox": "BOS",
        "Chicago Cubs": "CHC",
        "Chicago White Sox": "CHW",
        "Cincinnati Reds": "CIN",
        "Cleveland Guardians": "CLE",
        "Colorado Rockies": "COL",
        "Detroit Tigers": "DET",
        "Houston Astros": "HOU",
        "Kansas City Royals": "KC",
        "Los Angeles Angels": "LAA",
        "Los Angeles Dodgers": "LAD",
        "Miami Marlins": "MIA",
        "Milwaukee Brewers": "MIL",
        "Minnesota Twins": "MIN",
        "New York Mets": "NYM",
        "New York Yankees": "NYY",
        "Oakland Athletics": "OAK",
        "Philadelphia Phillies": "PHI",
        "Pittsburgh Pirates": "PIT",
        "San Diego Padres": "SD",
        "San Francisco Giants": "SF",
        "Seattle Mariners": "SEA",
        "St. Louis Cardinals": "STL",
        "Tampa Bay Rays": "TB",
        "Texas Rangers": "TEX",
        "Toronto Blue Jays": "TOR",
        "Washington Nationals": "WSH",
    },
    "NFL": {
        "Arizona Cardinals": "ARI",
        "Atlanta Falcons": "ATL",
        "Baltimore Ravens": "BAL",
        "Buffalo Bills": "BUF",
        "Carolina Panthers": "CAR",
        "Chicago Bears": "CHI",
        "Cincinnati Bengals": "CIN",
        "Cleveland Browns": "CLE",
        "Dallas Cowboys": "DAL",
        "Denver Broncos": "DEN",
        "Detroit Lions": "DET",
        "Green Bay Packers": "GB",
        "Houston Texans": "HOU",
        "Indianapolis Colts": "IND",
        "Jacksonville Jaguars": "JAX",
        "Kansas City Chiefs": "KC",
        "Las Vegas Raiders": "LV",
        "Los Angeles Chargers": "LAC",
        "Los Angeles Rams": "LAR",
        "Miami Dolphins": "MIA",
        "Minnesota Vikings": "MIN",
        "New England Patriots": "NE",
        "New Orleans Saints": "NO",
        "New York Giants": "NYG",
        "New York Jets": "NYJ",
        "Philadelphia Eagles": "PHI",
        "Pittsburgh Steelers": "PIT",
        "San Francisco 49ers": "SF",
        "Seattle Seahawks": "SEA",
        "Tampa Bay Buccaneers": "TB",
        "Tennessee Titans": "TEN",
        "Washington Commanders": "WSH",
    },
}


def normalize_name(value):
    return re.sub(r"\s+", " ", (value or "").lower()).strip()


class Team(db.Model):
    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)

    # Team identification
    sport = db.Column(db.String(10), nullable=False)
    name = db.Column(db.String(100), nullable=False)  # e.g. "Yankees"
    city = db.Column(db.String(100), nullable=False)  # e.g. "New York"
    abbreviation = db.Column(db.String(10), nullable=False, index=True)

    # Visual elements
    primary_color = db.Column(db.String(7))  # Hex color
    secondary_color = db.Column(db.String(7))  # Hex color
    logo_url = db.Column(db.String(500))
    pixelated_logo_url = db.Column(db.String(500))

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("sport", "abbreviation", name="unique_team_sport_abbr"),
    )

    def __repr__(self):
        return f"<Team {self.sport} {self.city} {self.name}>"

    @property
    def full_name(self):
        """Return full team name"""
        return f"{self.city} {self.name}"

    @staticmethod
    def abbreviation_for(sport, full_name):
        """Short name for a provider team name, falling back to its first three letters"""
        team = Team.resolve(sport, full_name)
        if team:
            return team.abbreviation

        known = DEFAULT_ABBREVIATIONS.get(sport.upper(), {})
        if full_name in known:
            return known[full_name]
        return full_name[:3].upper()

    @staticmethod
    def resolve(sport, name_or_abbr):
        """Find a team by abbreviation, city, nickname or full name"""
        key = normalize_name(name_or_abbr)
        if not key:
            return None

        for team in Team.query.filter_by(sport=sport.upper()).all():
            candidates = {
                normalize_name(team.abbreviation),
                normalize_name(team.name),
                normalize_name(team.full_name),
            }
            if key in candidates:
                return team
        return None

    def to_dict(self):
        """Convert team to dictionary for API responses"""
        return {
            "id": self.id,
            "sport": self.sport,
            "name": self.name,
            "city": self.city,
            "full_name": self.full_name,
            "abbreviation": self.abbreviation,
            "primary_color": self.primary_color,
            "secondary_color": self.secondary_color,
            "logo_url": self.pixelated_logo_url or self.logo_url,
        }

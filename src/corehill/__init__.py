"""corehill — Core War hill engine: matches, Glicko-2 ratings, replays."""

__version__ = "0.1.0"

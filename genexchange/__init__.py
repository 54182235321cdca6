"""Generation exchange matchmaking: pair youth and seniors by what they can teach and want to learn."""

__version__ = "0.1.0"

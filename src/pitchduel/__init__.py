"""Rules engine for a two-player, turn-based soccer card battler."""

__version__ = "0.1.0"

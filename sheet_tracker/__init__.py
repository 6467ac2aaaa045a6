"""sheet-tracker: turn a shared rollout spreadsheet export into a progress dashboard."""

__version__ = "0.3.0"

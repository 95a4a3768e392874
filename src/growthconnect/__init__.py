"""GrowthConnect - OAuth connection service for workspace marketing integrations."""

__version__ = "0.1.0"

"""Business Concierge - multi-channel customer gateway with a tool-using agent."""

__version__ = "1.0.0"

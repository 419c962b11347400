"""ThreatForge: STRIDE threat models from project artifacts."""

__version__ = "0.1.0"

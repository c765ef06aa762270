"""Agency Builder - AI-assisted workspace provisioning for insurance agency hierarchies."""

__version__ = "0.1.0"

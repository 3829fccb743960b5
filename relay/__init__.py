"""OpenAI-compatible relay in front of Azure OpenAI deployments."""

__version__ = "1.0.0"

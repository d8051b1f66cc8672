"""agentline — directory, mailbox and workspace tool servers for agents."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("agentline")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development

"""ShadowBridge relayer: moves compliance-gated transfers from a private source chain to a public destination chain."""

__version__ = "0.1.0"

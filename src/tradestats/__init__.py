"""TradeStats - Wallet trade analytics with a coalescing snapshot cache."""

__version__ = "0.1.0"

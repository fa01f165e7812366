from ucbcore.samplers.engine import ChainEngine

__all__ = [
    "ChainEngine",
]

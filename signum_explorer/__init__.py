"""
Signum Explorer: blockchain data acquisition and account notifier.

Polls a ranked pool of equivalent Signum API nodes for the balance,
transactions and forged blocks of registered accounts, and emits
human-readable notifications when something new is observed.
Modular architecture: upstream pool, TTL caches, typed client,
watermark store, notifier loop and runtime lifecycle.
"""

__version__ = "0.7.6"

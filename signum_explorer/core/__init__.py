"""
Core utilities: error hierarchy, secret scrubbing and the shared/exclusive lock.

Cross-cutting pieces used by the upstream pool, caches, watermark store and notifier.
"""

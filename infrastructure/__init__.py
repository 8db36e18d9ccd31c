"""Infrastructure layer — operational concerns of the live analyzer.

Modules:
    metrics     Prometheus metrics registry for frames, latency and drops.
"""

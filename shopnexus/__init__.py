"""Backend building blocks: configuration, in-memory pub/sub, SQL routing and tracing, Redis cache and VNPAY signing."""

__version__ = "0.1.0"
"""
ReflectAI resilience layer.

Turns every outbound call to a language-model provider into a fault-tolerant
operation: model selection, per-provider circuit breaking, retry with
backoff, response caching and distributed rate limiting with an in-memory
fallback when Redis is unreachable.
"""

__version__ = "1.0.0"

"""WireGuard data-path building blocks: packets, sessions, replay protection, rate limiting, UDP and benchmarks."""

__version__ = "0.1.0"
__all__ = ["benchmark", "errors", "packets", "rate_limiter", "session", "udp"]
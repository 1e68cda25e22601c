"""healthwatch — request-driven HTTP(S) endpoint monitoring."""

__version__ = "0.1.0"

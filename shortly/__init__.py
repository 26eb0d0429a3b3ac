"""URL shortener web service: accounts, short links, click statistics and a Redis redirect cache."""

__version__ = "0.1.0"
"""fastmirror — pick the fastest mirror endpoint from the requester's vantage point."""

__version__ = "0.1.0"

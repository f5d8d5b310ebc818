"""wrapflow: declarative, versioned chains of HTTP/DB stages invoked by name."""

__version__ = "0.1.0"

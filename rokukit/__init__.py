"""rokukit — build, link, package and deploy Roku channels."""

__version__ = "0.1.0"

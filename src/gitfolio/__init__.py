"""Gitfolio: a portfolio and blog backend that stores its content in a GitHub repository."""

__version__ = "0.1.0"

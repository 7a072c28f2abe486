"""Analysis service client."""

from mythscan.client.mythx import MythXClient
from mythscan.client.request import RequestBuilder

__all__ = ["MythXClient", "RequestBuilder"]

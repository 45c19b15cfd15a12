from pingwatch.models.check import Check
from pingwatch.models.ping import Ping
from pingwatch.models.integration import Integration

__all__ = ["Check", "Ping", "Integration"]

from .tenant import Tenant
from .processed_event import ProcessedEvent
from .failed_event import FailedEvent

__all__ = ["Tenant", "ProcessedEvent", "FailedEvent"]

from .alfa import AlfaClient
from .base import ProviderClient, TaggedResponse
from .cache import DayCache
from .deadline import Deadline
from .failover import FailoverRouter
from .faisal import FaisalClient
from .rate_gate import RateGate

__all__ = [
    "AlfaClient",
    "DayCache",
    "Deadline",
    "FaisalClient",
    "FailoverRouter",
    "ProviderClient",
    "RateGate",
    "TaggedResponse",
]

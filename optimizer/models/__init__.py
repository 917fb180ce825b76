from .tenant import Tenant  # noqa: F401
from .apikey import ApiKey  # noqa: F401
from .job import Job  # noqa: F401
from .optimization_log import OptimizationLogEntry  # noqa: F401
from .usage import UsageCounter  # noqa: F401

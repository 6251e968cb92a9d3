from core.perf.gate import *  # noqa: F401,F403
from core.perf.gate import __all__  # noqa: F401

from .base import *  # noqa: F401,F403
from .observability import *  # noqa: F401,F403
from .profiling import *  # noqa: F401,F403

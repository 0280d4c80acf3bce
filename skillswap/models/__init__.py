from skillswap.models.base import Base
from skillswap.models.swap import Swap, SwapStatus
from skillswap.models.user import User

__all__ = ["Base", "User", "Swap", "SwapStatus"]

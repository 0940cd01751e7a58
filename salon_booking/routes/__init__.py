from .reservations import router as reservations_router
from .reviews import router as reviews_router

__all__ = [
    "reservations_router",
    "reviews_router",
]

"""
API Routes Package
"""
from . import (
    chat,
    health,
)

"""
Core domain models, mathematical primitives, and contracts.

This module contains the foundational building blocks of the exposure/MTM
engine that are independent of external systems (price stores, trade
repositories, display layers).
"""

"""Application services built on the generation router."""

from coach.services.coach import TradingCoach

__all__ = ["TradingCoach"]

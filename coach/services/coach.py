"""Trading coach facade.

Thin entry points used by the chat feature: free-form chat (optionally with
a chart screenshot) and single-trade review. Both delegate to the
generation router with the fixed coach persona.
"""

import logging
from typing import Any

from coach.core.router import GenerationRouter
from coach.prompts.coach import get_trade_review_prompt

logger = logging.getLogger(__name__)


class TradingCoach:
    """Chat and trade review on top of a ``GenerationRouter``.

    Examples:
        >>> coach = TradingCoach(build_router())
        >>> await coach.chat("Explain premium vs discount")
        >>> await coach.review_trade({"pair": "GBPJPY", "pnl": 120.0})
    """

    def __init__(self, router: GenerationRouter) -> None:
        self.router = router

    async def chat(
        self,
        message: str,
        context: Any = None,
        image: str | None = None,
        deadline: float | None = None,
    ) -> str:
        """Chat with the coach.

        Args:
            message: The user's message.
            context: Optional structured context (trade, stats).
            image: Optional chart screenshot (base64 or data URL).
            deadline: Optional overall deadline in seconds.

        Returns:
            str: The coach's reply.

        Raises:
            AllProvidersExhaustedError: The AI service is unavailable.
        """
        return await self.router.generate(message, context, image, deadline=deadline)

    async def review_trade(
        self,
        trade: dict[str, Any],
        deadline: float | None = None,
    ) -> str:
        """Review one trade; the record is both the prompt payload and the context."""
        logger.debug(f"Reviewing trade with fields: {sorted(trade)}")
        prompt = get_trade_review_prompt(trade)
        return await self.router.generate(prompt, trade, deadline=deadline)

"""Density estimation for a named food via a chat model."""

import logging
import re

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage

from portion_api.agents.llm import message_text

logger = logging.getLogger(__name__)

DEFAULT_DENSITY_G_PER_ML = 1.0  # Water

NUMBER_PATTERN = re.compile(r"\d+(?:\.\d+)?")

DENSITY_PROMPT = (
    'Estimate the typical density (mass per volume) in grams per milliliter for "{food_name}" '
    "(e.g., water=1.0). Reply with a single number only, with up to two decimal places. "
    "If unsure, give a reasonable typical value."
)


def parse_density(text: str) -> float:
    """
    Read the first number in a model reply as a density.

    Replies without a usable number (refusals, hedging, prose) fall back to
    water density instead of failing the estimate.
    """
    match = NUMBER_PATTERN.search(text or "")
    if match:
        value = float(match.group(0))
        if value > 0:
            return value
    return DEFAULT_DENSITY_G_PER_ML


class DensityEstimator:
    """Ask a chat model for a food's density in g/mL."""

    def __init__(self, llm: BaseChatModel) -> None:
        self.llm = llm

    async def estimate(self, food_name: str) -> float:
        """
        Estimate density for a food.

        Never raises for provider or parsing problems; returns
        ``DEFAULT_DENSITY_G_PER_ML`` instead.
        """
        prompt = DENSITY_PROMPT.format(food_name=food_name)

        try:
            response = await self.llm.ainvoke([HumanMessage(content=prompt)])
        except Exception as e:
            logger.warning(
                f"Density request failed for '{food_name}', using {DEFAULT_DENSITY_G_PER_ML}: {e}"
            )
            return DEFAULT_DENSITY_G_PER_ML

        raw = message_text(response)
        density = parse_density(raw)

        logger.info(
            "Density estimated",
            extra={"food_name": food_name, "density_g_per_ml": density, "raw_response": raw[:100]},
        )
        return density

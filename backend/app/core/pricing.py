############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# pricing.py: Model price lookup, duration scaling and quota computation
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Pricing engine for video generation requests.

quota = int(model_price * duration_ratio * group_ratio * quota_per_unit)

When a model has no explicit flat price, its price is derived from the
model ratio: one ratio point costs ``video_unit_price_per_ratio`` (0.0025,
i.e. $0.04 at ratio 16).
"""

from typing import Optional

from backend.app.core.canonical_schemas import (
    ModelFamily,
    PriceData,
    RelayContext,
    get_model_family,
)
from backend.app.core.errors import ConfigError
from backend.app.settings import Settings

UNIT_PRICE_PER_RATIO = 0.0025
DEFAULT_DURATION_RATIO = 5.0

# Image-to-video duration (seconds) -> multiplier
_I2V_DURATION_RATIOS = {3: 3.0, 4: 4.0, 5: 5.0}


def price(
    model_ratio: float,
    group_ratio: float,
    model_price: Optional[float] = None,
    unit_price: float = UNIT_PRICE_PER_RATIO,
) -> PriceData:
    """Build PriceData, deriving the price from the ratio when none is given."""
    if model_price is not None:
        return PriceData(
            use_price=True,
            model_price=model_price,
            model_ratio=model_ratio,
            group_ratio=group_ratio,
        )
    return PriceData(
        use_price=False,
        model_price=unit_price * model_ratio,
        model_ratio=model_ratio,
        group_ratio=group_ratio,
    )


def model_price_helper(ctx: RelayContext, settings: Settings) -> PriceData:
    """Look up pricing for the context's upstream model.

    Raises:
        ConfigError: if the model has neither a flat price nor a ratio
    """
    model = ctx.upstream_model
    flat_price = settings.model_prices.get(model)
    model_ratio = settings.model_ratios.get(model)

    if flat_price is None and model_ratio is None:
        raise ConfigError(
            f"model {model!r} has no price or ratio configured",
            code="model_price_error",
        )

    return price(
        model_ratio=model_ratio if model_ratio is not None else 0.0,
        group_ratio=ctx.group_ratio,
        model_price=flat_price,
        unit_price=settings.video_unit_price_per_ratio,
    )


def duration_ratio(model: str, duration: int) -> float:
    """Multiplier applied to the base price for the requested length.

    Text-to-video is billed as 5 seconds. Image-to-video is billed by its
    duration (3, 4 or 5); anything else, including 0, bills as 5.
    """
    if get_model_family(model) == ModelFamily.IMAGE_TO_VIDEO:
        return _I2V_DURATION_RATIOS.get(duration, DEFAULT_DURATION_RATIO)
    return DEFAULT_DURATION_RATIO


def apply_duration_ratio(price_data: PriceData, model: str, duration: int) -> float:
    """Scale ``price_data.model_price`` in place; returns the ratio used."""
    ratio = duration_ratio(model, duration)
    price_data.model_price *= ratio
    return ratio


def compute_quota(price_data: PriceData, quota_per_unit: float) -> int:
    """Quota for an already duration-scaled price, truncated to an integer."""
    return int(price_data.model_price * price_data.group_ratio * quota_per_unit)


def format_quota(quota: int, quota_per_unit: float) -> str:
    """Human-readable dollar amount for a quota value."""
    return f"${quota / quota_per_unit:.6f}"

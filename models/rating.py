# models/rating.py
from decimal import Decimal, ROUND_HALF_UP

# Every rating scores the counterpart on these four 1-5 dimensions
RATING_DIMENSIONS = ("communication", "quality", "timeliness", "value")

# profile column holding the running average of each dimension
PROFILE_RATING_FIELDS = {
    "communication": "communication_rating",
    "quality": "quality_rating",
    "timeliness": "timeliness_rating",
    "value": "value_rating",
}


def running_average(old_average, old_count: int, new_value) -> Decimal:
    """Fold one more score into an average over `old_count` scores."""
    new_value = Decimal(str(new_value))
    if old_count <= 0:
        result = new_value
    else:
        result = (Decimal(str(old_average)) * old_count + new_value) / (old_count + 1)
    return result.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

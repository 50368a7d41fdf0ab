# workflows/ratings.py
"""
Ratings left by both sides once a project is completed.

The rater scores the counterpart on four dimensions; the overall score is
their mean. The counterpart's profile keeps running averages, so reading a
reputation never needs to scan the ratings table.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from errors import Conflict, InvalidRequest, PermissionDenied
from models.project import ProjectStatus
from models.rating import PROFILE_RATING_FIELDS, RATING_DIMENSIONS, running_average
from store import Store, utcnow
from workflows.proposals import load_project

logger = logging.getLogger(__name__)


def _check_scores(scores: dict) -> dict:
    checked = {}
    for dim in RATING_DIMENSIONS:
        value = scores.get(dim)
        if not isinstance(value, int) or isinstance(value, bool) or not 1 <= value <= 5:
            raise InvalidRequest(f"{dim} must be a whole number from 1 to 5")
        checked[dim] = value
    return checked


async def submit_rating(store: Store, rater_id: str, project_id: str, scores: dict, review: str = "") -> dict:
    checked = _check_scores(scores)
    overall = (Decimal(sum(checked.values())) / len(checked)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    async with store.transaction():
        project = await load_project(store, project_id, for_update=True)
        if project["status"] != ProjectStatus.COMPLETED.value:
            raise Conflict("Only completed projects can be rated")

        if rater_id == project["client_id"]:
            rater_type, rated_user_id, flag = "client", project["accepted_freelancer_id"], "client_rated"
        elif rater_id == project.get("accepted_freelancer_id"):
            rater_type, rated_user_id, flag = "freelancer", project["client_id"], "freelancer_rated"
        else:
            raise PermissionDenied("Only project participants can rate")

        if project.get(flag) or await store.find_one("ratings", project_id=project_id, rater_id=rater_id):
            raise Conflict("You have already rated this project")

        now = utcnow()
        rating = await store.insert("ratings", {
            "project_id": project_id,
            "rater_id": rater_id,
            "rated_user_id": rated_user_id,
            "rater_type": rater_type,
            **checked,
            "rating": overall,
            "review": review or "",
            "created_at": now,
        })
        await store.update("projects", project_id, **{flag: True, "updated_at": now})

        rated = await store.get("profiles", rated_user_id, for_update=True)
        previous = rated.get("total_ratings") or 0
        updates = {
            field: running_average(rated.get(field) or 0, previous, checked[dim])
            for dim, field in PROFILE_RATING_FIELDS.items()
        }
        updates["rating"] = running_average(rated.get("rating") or 0, previous, overall)
        updates["total_ratings"] = previous + 1
        await store.update("profiles", rated_user_id, **updates, updated_at=now)

    logger.info("Rating %s on project %s: %s rated %s %s", rating["id"], project_id, rater_type, rated_user_id, overall)
    return rating


async def rating_summary(store: Store, user_id: str, recent: int = 3) -> dict:
    """Averages from the profile plus the latest written reviews."""
    profile = await store.get("profiles", user_id) or {}
    ratings = []
    if profile:
        ratings = await store.find("ratings", rated_user_id=user_id, order_by="created_at", descending=True)

    return {
        "user_id": user_id,
        "rating": profile.get("rating") or 0,
        "total_ratings": profile.get("total_ratings") or 0,
        **{field: profile.get(field) or 0 for field in PROFILE_RATING_FIELDS.values()},
        "reviews": [
            {"rating": r["rating"], "review": r["review"], "rater_type": r["rater_type"], "created_at": r["created_at"]}
            for r in ratings if r.get("review")
        ][:recent],
    }

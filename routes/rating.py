# routes/rating.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from db import get_store
from routes.auth import get_current_user
from routes.common import ActionBody, ok, parse_payload, unknown_action
from workflows import ratings

router = APIRouter(tags=["rating"])


class SubmitRating(BaseModel):
    project_id: str
    communication: int = Field(ge=1, le=5)
    quality: int = Field(ge=1, le=5)
    timeliness: int = Field(ge=1, le=5)
    value: int = Field(ge=1, le=5)
    review: str = Field(default="", max_length=2000)


# ------------------------------------------------------
# POST: rate the other side of a completed project
# ------------------------------------------------------
@router.post("/ratings")
async def rating_actions(body: ActionBody, user: dict = Depends(get_current_user), store=Depends(get_store)):
    if body.action == "submit-rating":
        data = parse_payload(SubmitRating, body)
        rating = await ratings.submit_rating(
            store,
            user["id"],
            data.project_id,
            data.model_dump(include={"communication", "quality", "timeliness", "value"}),
            data.review,
        )
        return ok(rating)

    unknown_action(body.action)


# ------------------------------------------------------
# GET: public reputation card (averages + latest reviews)
# ------------------------------------------------------
@router.get("/users/{user_id}/rating-preview")
async def get_rating_preview(user_id: str, store=Depends(get_store)):
    return ok(await ratings.rating_summary(store, user_id))

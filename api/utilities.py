from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

from common.json_body import read_json
from common.responses import success_json, write_json
from common.strings import gen_random_string, make_slug

router = APIRouter(tags=["Utilities"])

MAX_RANDOM_STRING_LENGTH = 1024


class SlugRequest(BaseModel):
    text: str


@router.post("/slugs",
    summary="Create a slug",
    description="Turn arbitrary text into a lowercase, hyphen-separated slug"
)
async def create_slug(request: Request):
    payload: SlugRequest = await read_json(request, SlugRequest)
    slug = make_slug(payload.text)
    return success_json(data={"slug": slug})


@router.get("/random-strings",
    summary="Generate a random string",
    description="Random string drawn from a 64-symbol alphabet using a CSPRNG"
)
def random_string(
    length: int = Query(25, ge=0, le=MAX_RANDOM_STRING_LENGTH, description="Number of characters"),
):
    return write_json(
        {"value": gen_random_string(length)},
        headers={"Cache-Control": "no-store"},
    )

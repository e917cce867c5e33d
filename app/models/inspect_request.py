from pydantic import BaseModel, Field


class InspectRequest(BaseModel):
    url: str = Field(
        min_length=1,
        description="Page to inspect. ``https://`` is assumed when no scheme is given.",
        examples=["https://go.dev", "en.wikipedia.org/wiki/Germany"],
    )

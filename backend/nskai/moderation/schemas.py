from pydantic import BaseModel, Field


class CourseRejection(BaseModel):
    reason: str | None = Field(None, max_length=1000, description="Optional note for the tutor")

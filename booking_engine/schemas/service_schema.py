"""Service offering model."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ServiceOffering(BaseModel):
    """A bookable appointment kind with fixed duration and minimum notice."""

    model_config = ConfigDict(frozen=True)

    id: str
    slug: str
    title: str
    description: str = ""
    duration_minutes: int = Field(gt=0, le=24 * 60)
    minimum_notice_minutes: int = Field(default=0, ge=0)
    price: Optional[float] = None
    currency: Optional[str] = None

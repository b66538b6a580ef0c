from __future__ import annotations

from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from finapi.services.budgeting.common import check_month_key


# YYYY-MM with a real calendar month (01-12) and a representable year
MonthKey = Annotated[str, AfterValidator(check_month_key)]


class ApiModel(BaseModel):
    """camelCase on the wire; snake_case attribute names are accepted on input too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

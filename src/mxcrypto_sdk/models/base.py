from pydantic import BaseModel, ConfigDict


class MXModel(BaseModel):
    """Base for wire models; unknown server fields are kept, not rejected."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

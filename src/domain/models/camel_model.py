import humps
from pydantic import BaseModel


class CamelModel(BaseModel):
    """A pydantic.BaseModel with CamelCase aliases."""

    model_config = {
        "alias_generator": humps.camelize,
        "populate_by_name": True,
        "from_attributes": True,
    }

    def to_json_dict(self) -> dict:
        """Dump to a JSON-compatible dict using the camelCase wire names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

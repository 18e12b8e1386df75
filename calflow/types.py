from typing import Annotated

import pydantic

# pydantics import string alone does not generate a schema, which breaks openapi
# docs. We wrap it to set schema explicitly.
ImportString = Annotated[
    pydantic.ImportString, pydantic.WithJsonSchema({"type": "string", "description": "fully qualified class name"})
]

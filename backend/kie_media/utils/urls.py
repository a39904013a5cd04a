from typing import Annotated

from pydantic import AfterValidator, AnyUrl, StrictStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

_URL_ADAPTER = TypeAdapter(AnyUrl)


def check_absolute_url(value: str) -> str:
    try:
        _URL_ADAPTER.validate_python(value)
    except PydanticValidationError:
        raise PydanticCustomError("invalid_url", "Input should be a valid absolute URL") from None
    # keep the caller's string, AnyUrl would normalize it
    return value


UrlString = Annotated[StrictStr, AfterValidator(check_absolute_url)]

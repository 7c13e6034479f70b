from .http_response import api_response as api_response
from .http_response import error_response as error_response
from .http_response import (
    validation_error_response as validation_error_response,
)
from .validators import to_decimal as to_decimal

from .json import dumps
from .errors import error_response

from .constants import *
from .utility_functions import (
    configure_logging,
    describe_client,
    user_agent,
    close_socket,
    describe_validation_error,
    truncate_reason,
)

from .constants import *  # noqa: F401,F403
from .errors import BrokerTransientError, InvariantViolation, UserInputError
from .logger import setup_logger
from .utility_functions import (
    NO_DATA_MESSAGE,
    TOPIC_REQUIRED_MESSAGE,
    decode_payload,
    encode_payload,
    make_error,
    make_frame,
    make_live_message,
    make_no_data,
    iso_from_epoch,
    validate_topic,
)

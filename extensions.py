from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

limiter = Limiter(
    # The default key is the IP address of the user making the request.
    key_func=get_remote_address,
    # This option is passed to the Redis client to ensure it decodes responses to strings.
    storage_options={"decode_responses": True},
    # The storage URI is set from RATELIMIT_STORAGE_URI in main.py.
    default_limits=["1000 per day", "300 per hour"]
)

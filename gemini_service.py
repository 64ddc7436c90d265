import logging
import time
from typing import List, Optional

import httpx
import redis
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from api.prompts import build_verification_prompt
from errors import OracleTimeout, OracleUnavailable

logger = logging.getLogger(__name__)

KEY_INDEX_CACHE_KEY = "current_verification_gemini_key_index"
# Rate limiting and server-side failures are worth another attempt; anything else is not.
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class GeminiOracle:
    """
    Asks Gemini to judge a collection photo against the reported waste.

    Returns the model's raw text; parsing and acceptance rules belong to the
    verification workflow. Calls are bounded by a per-request timeout, and
    transient API failures are retried with exponential backoff, rotating
    through the configured API keys. The index of the last key that worked is
    remembered in Redis so every worker starts from a healthy key.
    """

    def __init__(
        self,
        api_keys: List[str],
        model: str = "gemini-1.5-flash",
        timeout_seconds: float = 30,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        redis_client=None,
        client_factory=None,
        sleep=time.sleep,
    ):
        self.api_keys = [key for key in api_keys if key]
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds
        self.redis_client = redis_client
        self.client_factory = client_factory or self._default_client
        self.sleep = sleep

    def _default_client(self, api_key):
        return genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(self.timeout_seconds * 1000)),
        )

    def _starting_key_index(self) -> int:
        if not self.redis_client:
            return 0
        try:
            return int(self.redis_client.get(KEY_INDEX_CACHE_KEY) or 0) % len(self.api_keys)
        except (redis.exceptions.RedisError, ValueError) as e:
            logger.warning(f"Could not read Gemini key index from Redis: {e}")
            return 0

    def _remember_key_index(self, index: int):
        if not self.redis_client:
            return
        try:
            self.redis_client.set(KEY_INDEX_CACHE_KEY, index)
        except redis.exceptions.RedisError as e:
            logger.warning(f"Could not store Gemini key index in Redis: {e}")

    def judge(self, image_bytes: bytes, expected_waste_type: str, expected_amount: str,
              mime_type: str = "image/jpeg") -> str:
        if not self.api_keys:
            raise OracleUnavailable("Image verification is not configured.")

        prompt = build_verification_prompt(expected_waste_type, expected_amount)
        contents = [prompt, types.Part.from_bytes(data=image_bytes, mime_type=mime_type)]
        start_index = self._starting_key_index()
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            key_index = (start_index + attempt) % len(self.api_keys)
            try:
                logger.info(f"--> Verification attempt {attempt + 1} with Gemini API Key #{key_index + 1}")
                client = self.client_factory(self.api_keys[key_index])
                response = client.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=types.GenerateContentConfig(temperature=0.1),
                )
                self._remember_key_index(key_index)
                text = response.text or ""
                logger.info(f"Raw Gemini verification response: {text[:500]}")
                return text
            except httpx.TimeoutException as e:
                logger.error(f"Gemini verification timed out after {self.timeout_seconds}s: {e}")
                raise OracleTimeout(
                    "Image verification took too long. Please try again.",
                    {"timeoutSeconds": self.timeout_seconds},
                ) from e
            except genai_errors.APIError as e:
                last_error = e
                if e.code not in RETRYABLE_STATUS_CODES:
                    logger.error(f"Gemini API Key #{key_index + 1} failed permanently: {e}")
                    raise OracleUnavailable(
                        "Image verification service rejected the request.", {"statusCode": e.code}
                    ) from e
                logger.warning(f"Gemini API Key #{key_index + 1} failed with {e.code}: {e}")
                if attempt < self.max_retries - 1:
                    self.sleep(self.backoff_seconds * (2 ** attempt))

        logger.error(f"All {self.max_retries} Gemini verification attempts failed. Last error: {last_error}")
        raise OracleUnavailable(
            "Image verification service is unavailable. Please try again later.",
            {"attempts": self.max_retries},
        )

    def health_check(self):
        if not self.api_keys:
            return {"status": "ERROR", "details": "No GEMINI_API_KEY environment variables found."}
        return {"status": "OK", "details": f"{len(self.api_keys)} Gemini API key(s) configured, model {self.model}."}

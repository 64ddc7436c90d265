"""
Dependency container for the Clean-Hero backend.
Reads configuration from the environment and hands out lazily-initialized
clients, so importing a module never opens a connection by itself.
"""

import logging
import os
import threading

import redis
from dotenv import load_dotenv
from google.cloud import firestore
from redis.backoff import ExponentialBackoff
from redis.retry import Retry

load_dotenv()

# --- Environment variables ---
STORE_BACKEND = os.environ.get("STORE_BACKEND", "firestore")
GCP_PROJECT_ID = os.environ.get("GCP_PROJECT_ID")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY")
APP_TIMEZONE = os.environ.get("APP_TIMEZONE", "Asia/Jakarta")
IMPACT_CACHE_TTL_SECONDS = int(os.environ.get("IMPACT_CACHE_TTL_SECONDS", 600))

GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_TIMEOUT_SECONDS = float(os.environ.get("GEMINI_TIMEOUT_SECONDS", 30))
VERIFICATION_MAX_RETRIES = int(os.environ.get("VERIFICATION_MAX_RETRIES", 3))
VERIFICATION_RETRY_BACKOFF_SECONDS = float(os.environ.get("VERIFICATION_RETRY_BACKOFF_SECONDS", 1.0))

# --- Gemini API Keys ---
# Up to 4 keys for redundancy; a single GEMINI_API_KEY also works.
GEMINI_API_KEYS = [os.environ.get(f"GEMINI_API_KEY_{i+1}") for i in range(4)]
ACTIVE_GEMINI_KEYS = [key for key in GEMINI_API_KEYS if key]
if not ACTIVE_GEMINI_KEYS and os.environ.get("GEMINI_API_KEY"):
    ACTIVE_GEMINI_KEYS = [os.environ.get("GEMINI_API_KEY")]

# --- LAZY INITIALIZED CLIENTS ---
_lock = threading.Lock()
_db = None
_redis_client = None
_redis_checked = False
_task_store = None
_ledger = None
_user_directory = None
_oracle = None


def get_db():
    global _db
    if _db is None:
        _db = firestore.Client(project=GCP_PROJECT_ID)
    return _db


def get_redis_client():
    """
    Returns a Redis client with retry logic, or None when Redis is unreachable.
    Callers treat None as "skip caching".
    """
    global _redis_client, _redis_checked
    if _redis_checked:
        return _redis_client
    with _lock:
        if _redis_checked:
            return _redis_client
        try:
            retry = Retry(ExponentialBackoff(), retries=3)
            connection_pool = redis.ConnectionPool.from_url(
                REDIS_URL,
                decode_responses=True,
                retry=retry,
                max_connections=20,
                health_check_interval=30,
                socket_connect_timeout=5,
                socket_timeout=10,
            )
            client = redis.Redis(connection_pool=connection_pool)
            client.ping()
            _redis_client = client
            logging.info("Redis connection pool initialized successfully")
        except redis.exceptions.ConnectionError as e:
            logging.error(f"Failed to connect to Redis: {e}")
            _redis_client = None
        _redis_checked = True
    return _redis_client


def _build_stores():
    global _task_store, _ledger, _user_directory
    from store import (
        FirestoreLedger, FirestoreTaskStore, FirestoreUserDirectory,
        MemoryLedger, MemoryTaskStore, MemoryUserDirectory,
    )

    if STORE_BACKEND == "memory":
        logging.warning("Using the in-memory store; data is lost on restart.")
        _task_store = MemoryTaskStore()
        _ledger = MemoryLedger(_task_store)
        _user_directory = MemoryUserDirectory()
    elif STORE_BACKEND == "firestore":
        db = get_db()
        _task_store = FirestoreTaskStore(db)
        _ledger = FirestoreLedger(db, _task_store)
        _user_directory = FirestoreUserDirectory(db)
    else:
        raise ValueError(f"Unknown STORE_BACKEND '{STORE_BACKEND}'; expected 'firestore' or 'memory'.")


def get_task_store():
    with _lock:
        if _task_store is None:
            _build_stores()
    return _task_store


def get_ledger():
    with _lock:
        if _ledger is None:
            _build_stores()
    return _ledger


def get_user_directory():
    with _lock:
        if _user_directory is None:
            _build_stores()
    return _user_directory


def get_oracle():
    global _oracle
    if _oracle is None:
        from gemini_service import GeminiOracle
        _oracle = GeminiOracle(
            ACTIVE_GEMINI_KEYS,
            model=GEMINI_MODEL,
            timeout_seconds=GEMINI_TIMEOUT_SECONDS,
            max_retries=VERIFICATION_MAX_RETRIES,
            backoff_seconds=VERIFICATION_RETRY_BACKOFF_SECONDS,
            redis_client=get_redis_client(),
        )
    return _oracle


def get_verification_workflow():
    from verification import VerificationWorkflow
    return VerificationWorkflow(get_ledger(), get_oracle())

import os
from pathlib import Path
from dotenv import load_dotenv
from django.core.exceptions import ImproperlyConfigured

load_dotenv()  # Load .env file if present

BASE_DIR = Path(__file__).resolve().parents[2]
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-key")
DEBUG = os.getenv("DJANGO_DEBUG", "false").lower() in {"1", "true", "yes"}
raw_hosts = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1")
ALLOWED_HOSTS = [h.strip() for h in raw_hosts.split(",") if h.strip()]

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

# Hosting platforms set one of these; the snapshot must live in Postgres there.
IS_PRODUCTION = (
    os.getenv("DJANGO_ENV", "").lower() == "production"
    or os.getenv("RAILWAY_ENVIRONMENT") is not None
    or os.getenv("FLY_APP_NAME") is not None
)

INSTALLED_APPS = [
    # Django Admin Deps
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Our apps and 3rd party
    "rest_framework",
    "indexer.apps.chain.apps.ChainConfig",
    "indexer.apps.ingest.apps.IngestConfig",
    "indexer.apps.builders.apps.BuildersConfig",
    "indexer.apps.tokens.apps.TokensConfig",
    "indexer.apps.api.apps.ApiConfig",
    "whitenoise.runserver_nostatic",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "indexer.urls"
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ]
        },
    }
]
WSGI_APPLICATION = "indexer.wsgi.application"

# Postgres by default; override with dev/test settings as needed
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "HOST": os.getenv("DB_HOST", "localhost"),
        "PORT": os.getenv("DB_PORT", "5432"),
        "NAME": os.getenv("DB_NAME", "indexer_db"),
        "USER": os.getenv("DB_USER", "indexer_user"),
        "PASSWORD": os.getenv("DB_PASSWORD", "indexer_password"),
        "CONN_MAX_AGE": int(os.getenv("DB_CONN_MAX_AGE", "60")),
    }
}

DATABASE_URL = os.getenv("DATABASE_URL")
if DATABASE_URL:
    from urllib.parse import urlparse

    parsed = urlparse(DATABASE_URL)
    DATABASES["default"].update(
        {
            "NAME": parsed.path.lstrip("/"),
            "USER": parsed.username,
            "PASSWORD": parsed.password,
            "HOST": parsed.hostname,
            "PORT": parsed.port or "5432",
            "OPTIONS": {"sslmode": os.getenv("DB_SSLMODE", "require")},
        }
    )
elif IS_PRODUCTION and not os.getenv("DB_HOST"):
    raise ImproperlyConfigured(
        "DATABASE_URL (or DB_HOST) is required in production; "
        "the materialized snapshot must be stored in PostgreSQL."
    )

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.LimitOffsetPagination",
    "PAGE_SIZE": int(os.getenv("API_PAGE_SIZE", "100")),
    # uint256 values do not fit in a JSON number
    "COERCE_DECIMAL_TO_STRING": True,
}

# ==============================================================================
# Logging
# ==============================================================================

INDEXER_LOG_LEVEL = os.getenv("INDEXER_LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "indexer": {
            "handlers": ["console"],
            "level": INDEXER_LOG_LEVEL,
            "propagate": False,
        },
        "celery": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
}

# ==============================================================================
# Celery configuration
# ==============================================================================

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_DEFAULT_QUEUE = os.getenv("CELERY_TASK_DEFAULT_QUEUE", "indexer")
CELERY_TASK_ACKS_LATE = True
CELERY_TASK_TIME_LIMIT = int(os.getenv("CELERY_TASK_TIME_LIMIT", "600"))

CELERY_BROKER_CONNECTION_RETRY_ON_STARTUP = True

# ==============================================================================
# Web3 / Blockchain Configuration
# ==============================================================================

CHAIN_ID = int(os.getenv("CHAIN_ID", "8453"))
CHAIN_NAME = os.getenv("CHAIN_NAME", "base")

# Primary endpoint first; the public fallback is rate limited.
# For local Hardhat: http://127.0.0.1:8545
INDEXER_CHAINS = {
    CHAIN_NAME: {
        "chain_id": CHAIN_ID,
        "rpc": [
            {
                "url": os.getenv(
                    f"PONDER_RPC_URL_{CHAIN_ID}",
                    os.getenv(f"RPC_URL_{CHAIN_ID}", "https://mainnet.base.org"),
                ),
                "requests_per_second": None,
            },
            {
                "url": os.getenv(
                    f"RPC_FALLBACK_URL_{CHAIN_ID}", "https://base-rpc.publicnode.com"
                ),
                "requests_per_second": float(
                    os.getenv(f"RPC_FALLBACK_RPS_{CHAIN_ID}", "25")
                ),
            },
        ],
    },
}

# Contract Addresses
BUILDERS_CONTRACT_ADDRESS = os.getenv(
    "BUILDERS_CONTRACT_ADDRESS", "0x42BB446eAE6dca7723a9eBdb81EA88aFe77eF4B9"
)
BUILDERS_START_BLOCK = int(os.getenv("BUILDERS_START_BLOCK", "24381796"))
MOR_TOKEN_ADDRESS = os.getenv(
    "MOR_TOKEN_ADDRESS", "0x7431ADA8A591C955A994A21710752ef9b882b8e3"
)
MOR_TOKEN_START_BLOCK = int(os.getenv("MOR_TOKEN_START_BLOCK", "7500000"))

# ABI Paths
BUILDERS_ABI_PATH = BASE_DIR / "indexer" / "apps" / "chain" / "abi" / "Builders.json"
ERC20_ABI_PATH = BASE_DIR / "indexer" / "apps" / "chain" / "abi" / "ERC20.json"

# Contracts indexed per chain, keyed by the name used in the handler registry.
INDEXER_CONTRACTS = {
    "Builders": {
        "chain": CHAIN_NAME,
        "address": BUILDERS_CONTRACT_ADDRESS,
        "abi_path": BUILDERS_ABI_PATH,
        "start_block": BUILDERS_START_BLOCK,
    },
    "MorToken": {
        "chain": CHAIN_NAME,
        "address": MOR_TOKEN_ADDRESS,
        "abi_path": ERC20_ABI_PATH,
        "start_block": MOR_TOKEN_START_BLOCK,
    },
}

# Transfers to/from these addresses are flagged as staking movements.
STAKING_CONTRACT_ADDRESSES = [
    a.strip()
    for a in os.getenv("STAKING_CONTRACT_ADDRESSES", BUILDERS_CONTRACT_ADDRESS).split(",")
    if a.strip()
]

# ==============================================================================
# Indexer policy
# ==============================================================================

INDEXER_STATE_READ_ATTEMPTS = int(os.getenv("INDEXER_STATE_READ_ATTEMPTS", "5"))
INDEXER_RETRY_BACKOFF_SECONDS = float(os.getenv("INDEXER_RETRY_BACKOFF_SECONDS", "0.5"))
INDEXER_BLOCK_BATCH_SIZE = int(os.getenv("INDEXER_BLOCK_BATCH_SIZE", "2000"))
INDEXER_CONFIRMATIONS = int(os.getenv("INDEXER_CONFIRMATIONS", "0"))
INDEXER_POLL_INTERVAL_SECONDS = float(os.getenv("INDEXER_POLL_INTERVAL_SECONDS", "5"))

CELERY_BEAT_SCHEDULE = {
    f"index-{name}": {
        "task": "indexer.apps.ingest.tasks.index_chain",
        "schedule": INDEXER_POLL_INTERVAL_SECONDS,
        "args": (name,),
    }
    for name in INDEXER_CHAINS
}

"""Configuration package (Facade).

Re-exports the public config types so callers import from one stable path:

	from app.services.config import SeededTableConfig

The individual modules stay free to move around without touching call sites.
"""

from app.services.config.api_config import ApiConfig, ApiKey
from app.services.config.orders_config import OrdersHandlerConfig
from app.services.config.s3_config import S3Config
from app.services.config.seed_config import SeedDataConfig
from app.services.config.table_config import (
	KeyAttribute,
	KeyType,
	RemovalPolicy,
	SeededTableConfig,
	TablePolicies,
)

__all__ = [
	"ApiConfig",
	"ApiKey",
	"KeyAttribute",
	"KeyType",
	"OrdersHandlerConfig",
	"RemovalPolicy",
	"S3Config",
	"SeedDataConfig",
	"SeededTableConfig",
	"TablePolicies",
]

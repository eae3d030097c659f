"""Certificate layer package for store access and lifecycle management."""

from .interfaces import CertificateResult, CertificateStorePort
from .manager import REACHABILITY_POLICIES, CertificateManager, CertificateManagerConfig
from .store import FULLCHAIN_FILE_NAME, PRIVKEY_FILE_NAME, CertificateStore, store_parse_expiry

__all__ = [
	"CertificateManager",
	"CertificateManagerConfig",
	"CertificateResult",
	"CertificateStore",
	"CertificateStorePort",
	"FULLCHAIN_FILE_NAME",
	"PRIVKEY_FILE_NAME",
	"REACHABILITY_POLICIES",
	"store_parse_expiry",
]

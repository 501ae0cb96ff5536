from .service import QuotaAccountant, bytes_to_mb

__all__ = ["QuotaAccountant", "bytes_to_mb"]

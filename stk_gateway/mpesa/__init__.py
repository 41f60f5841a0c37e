from stk_gateway.mpesa.client import DarajaClient
from stk_gateway.mpesa.signer import provider_now, sign
from stk_gateway.mpesa.token_cache import TokenCache, UpstreamToken

__all__ = ["DarajaClient", "TokenCache", "UpstreamToken", "provider_now", "sign"]

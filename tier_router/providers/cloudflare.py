# tier_router/providers/cloudflare.py
"""
Cloudflare Workers AI adapter.

Needs two credentials, the API token and the account id. The account id
and the model id both go into the URL path; the body carries only the
messages and sampling parameters.
"""

from __future__ import annotations

from ..constants import PROVIDER_ENDPOINTS
from ..models import ModelDescriptor, ProviderInput, ProviderResponse
from .base import BaseProvider, bearer_headers


class CloudflareProvider(BaseProvider):
    name = "cloudflare"
    env_key = "CLOUDFLARE_API_KEY"
    account_key = "CLOUDFLARE_ACCOUNT_ID"

    def url(self, account_id: str, model: ModelDescriptor) -> str:
        return f"{PROVIDER_ENDPOINTS['cloudflare']}/{account_id}/ai/run/{model.id}"

    async def call(self, model: ModelDescriptor, payload: ProviderInput) -> ProviderResponse:
        api_key = self.get_api_key()
        account_id = self.credential(self.account_key)
        body = {
            "messages": self.get_messages(payload),
            "temperature": self.get_temperature(payload),
            "max_tokens": self.get_max_tokens(payload),
        }
        return await self._post(self.url(account_id, model), bearer_headers(api_key), body, model)

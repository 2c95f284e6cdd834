# quillchain/core/indexer.py
"""Client for the backend's Koios indexer proxy."""

import requests
from decimal import Decimal
from typing import Dict, List, Optional

from quillchain.config import DEFAULT_API_URL, env_float, env_str
from quillchain.core.errors import IndexerUnavailable
from quillchain.utils.console import print_debug
from quillchain.utils.formatting import lovelace_to_ada, quantize
from quillchain.utils.validation import normalize_tx_hash


class IndexerClient:
    """Read-only chain queries routed through ``POST {api}/koios/<endpoint>``.

    The network travels in the request body; the proxy picks the Koios
    instance for it.
    """

    def __init__(self, endpoint_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.endpoint_url = (endpoint_url or env_str("QUILL_API_URL", DEFAULT_API_URL)).rstrip('/')
        self.timeout = timeout if timeout is not None else env_float("QUILL_HTTP_TIMEOUT", 15.0)
        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': 'QuillChain/1.0',
        })

    def _post(self, endpoint: str, network: str, payload: Dict) -> List[Dict]:
        url = f'{self.endpoint_url}/koios/{endpoint}'
        body = dict(payload, network=network)
        try:
            response = self.session.post(url, json=body, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise IndexerUnavailable(
                f"Indexer call {endpoint} failed: {e}",
                details={"endpoint": endpoint, "network": network},
            ) from e

        if response.status_code != 200:
            raise IndexerUnavailable(
                f"Indexer call {endpoint} returned HTTP {response.status_code}: {response.text}",
                details={"endpoint": endpoint, "network": network, "status": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise IndexerUnavailable(f"Indexer call {endpoint} returned invalid JSON") from e

        print_debug(f"koios/{endpoint} [{network}] -> {len(data) if isinstance(data, list) else 'non-list'}")
        return data if isinstance(data, list) else []

    def address_info(self, network: str, addresses: List[str]) -> List[Dict]:
        return self._post('address-info', network, {'addresses': list(addresses)})

    def tx_info(self, network: str, tx_hashes: List[str]) -> List[Dict]:
        """Look up transactions by hash; unknown hashes are simply absent."""
        hashes = [h for h in (normalize_tx_hash(h) for h in tx_hashes) if h]
        if not hashes:
            return []
        return self._post('tx-info', network, {'txHashes': hashes})

    def address_txs(self, network: str, addresses: List[str], limit: int = 50) -> List[Dict]:
        return self._post('address-txs', network, {'addresses': list(addresses), 'limit': limit})

    def get_balance(self, network: str, address: str) -> Optional[Decimal]:
        """Address balance in ADA (2 dp), or None when the indexer has no entry."""
        data = self.address_info(network, [address])
        if not data:
            return None
        entry = data[0] or {}
        lovelace = entry.get('balance') or entry.get('balance_total') or '0'
        ada = lovelace_to_ada(lovelace)
        return quantize(ada, 2) if ada is not None else None

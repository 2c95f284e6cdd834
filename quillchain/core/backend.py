# quillchain/core/backend.py
"""HTTP client for the notes and blockchain-transaction APIs."""

import requests
from typing import Any, Dict, List, Optional

from quillchain.config import DEFAULT_API_URL, env_float, env_str
from quillchain.core.errors import BackendConflict, BackendUnavailable
from quillchain.utils.console import print_debug


class BackendClient:
    """Thin wrapper over the backend REST API.

    Transport failures and unexpected status codes raise BackendUnavailable;
    a 409 on transaction create raises BackendConflict.
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

    def _request(self, method: str, path: str, ok=(200, 201, 204), **kwargs) -> requests.Response:
        url = f'{self.endpoint_url}{path}'
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise BackendUnavailable(f"{method} {path} failed: {e}") from e
        print_debug(f"{method} {path} -> {response.status_code}")
        if response.status_code not in ok:
            raise BackendUnavailable(
                f"{method} {path} returned HTTP {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: requests.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendUnavailable("Backend returned invalid JSON", status_code=response.status_code) from e

    # =========================================================================
    # Notes
    # =========================================================================

    def create_note(self, payload: Dict) -> Dict:
        return self._json(self._request('POST', '/notes', json=payload))

    def get_note(self, note_id) -> Optional[Dict]:
        response = self._request('GET', f'/notes/{note_id}', ok=(200, 404))
        if response.status_code == 404:
            return None
        return self._json(response)

    def list_notes(self, params: Optional[Dict] = None) -> Any:
        return self._json(self._request('GET', '/notes', params=params or {}))

    def update_note(self, note_id, payload: Dict) -> Dict:
        return self._json(self._request('PUT', f'/notes/{note_id}', json=payload))

    def delete_note(self, note_id) -> None:
        self._request('DELETE', f'/notes/{note_id}')

    def update_note_status(self, note_id, status: str, tx_hash: Optional[str] = None,
                           network: Optional[str] = None, wallet_address: Optional[str] = None) -> Any:
        params = {'status': status}
        if tx_hash:
            params['txHash'] = tx_hash
        if network:
            params['network'] = network
        if wallet_address:
            params['walletAddress'] = wallet_address
        return self._json(self._request('PATCH', f'/notes/{note_id}/status', params=params))

    # =========================================================================
    # Blockchain transactions
    # =========================================================================

    def create_transaction(self, payload: Dict) -> Dict:
        response = self._request('POST', '/blockchain-transactions', ok=(200, 201, 409), json=payload)
        if response.status_code == 409:
            raise BackendConflict(
                f"Transaction {payload.get('txHash')} already exists",
                tx_hash=payload.get('txHash'),
            )
        return self._json(response)

    def get_transaction_by_hash(self, tx_hash: str) -> Optional[Dict]:
        response = self._request('GET', f'/blockchain-transactions/hash/{tx_hash}', ok=(200, 404))
        if response.status_code == 404:
            return None
        return self._json(response)

    def update_transaction(self, transaction_id, payload: Dict) -> Dict:
        body = dict(payload, id=transaction_id)
        return self._json(self._request('PUT', f'/blockchain-transactions/{transaction_id}', json=body))

    def update_transaction_status(self, transaction_id, status: str) -> Dict:
        return self._json(self._request(
            'PATCH', f'/blockchain-transactions/{transaction_id}/status', params={'status': status}
        ))

    def list_transactions(self, wallet_address: Optional[str] = None, filters: Optional[Dict] = None,
                          page: int = 0, size: int = 50) -> Dict:
        params = {'page': page, 'size': size}
        if wallet_address:
            params['walletAddress'] = wallet_address
        for key in ('operationType', 'status', 'network'):
            if filters and filters.get(key):
                params[key] = filters[key]
        return self._json(self._request('GET', '/blockchain-transactions', params=params))

    def note_transactions(self, note_id, page: int = 0, size: int = 10) -> Dict:
        return self._json(self._request(
            'GET', f'/blockchain-transactions/note/{note_id}', params={'page': page, 'size': size}
        ))

    def transaction_stats(self, wallet_address: Optional[str] = None) -> Dict:
        params = {'walletAddress': wallet_address} if wallet_address else {}
        return self._json(self._request('GET', '/blockchain-transactions/stats', params=params))

    def recent_transactions(self, wallet_address: str) -> List[Dict]:
        data = self._json(self._request('GET', f'/blockchain-transactions/wallet/{wallet_address}/recent'))
        return data or []

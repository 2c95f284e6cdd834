import pytest
import requests
from decimal import Decimal
from unittest.mock import Mock, patch

from quillchain.core.backend import BackendClient
from quillchain.core.errors import BackendConflict, BackendUnavailable, IndexerUnavailable
from quillchain.core.indexer import IndexerClient


def _response(status_code, payload=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = text or str(payload)
    response.content = b"{}" if payload is not None else b""
    return response


class TestIndexerClient:
    @patch('quillchain.core.indexer.requests.Session')
    def test_tx_info_sends_network_in_body(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.post.return_value = _response(200, [{"tx_hash": "h1", "fee": "180000"}])

        client = IndexerClient("http://api.test/api/")
        data = client.tx_info("preprod", [" h1 ", ""])

        assert data == [{"tx_hash": "h1", "fee": "180000"}]
        url = session.post.call_args[0][0]
        body = session.post.call_args[1]["json"]
        assert url == "http://api.test/api/koios/tx-info"
        assert body == {"txHashes": ["h1"], "network": "preprod"}

    @patch('quillchain.core.indexer.requests.Session')
    def test_tx_info_without_hashes_makes_no_call(self, mock_session_cls):
        client = IndexerClient("http://api.test/api")
        assert client.tx_info("preview", []) == []
        mock_session_cls.return_value.post.assert_not_called()

    @patch('quillchain.core.indexer.requests.Session')
    def test_errors_raise_indexer_unavailable(self, mock_session_cls):
        session = mock_session_cls.return_value
        client = IndexerClient("http://api.test/api")

        session.post.return_value = _response(502, text="bad gateway")
        with pytest.raises(IndexerUnavailable):
            client.address_info("preview", ["addr_test1qqwalletaaaaaaaaaa"])

        session.post.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(IndexerUnavailable):
            client.address_txs("preview", ["addr_test1qqwalletaaaaaaaaaa"])

    @patch('quillchain.core.indexer.requests.Session')
    def test_get_balance(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.post.return_value = _response(200, [{"address": "a", "balance": "12345678"}])
        client = IndexerClient("http://api.test/api")

        assert client.get_balance("preview", "a") == Decimal("12.35")

        session.post.return_value = _response(200, [])
        assert client.get_balance("preview", "a") is None


class TestBackendClient:
    @patch('quillchain.core.backend.requests.Session')
    def test_create_transaction_conflict(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.request.return_value = _response(409, {"error": "duplicate"})
        client = BackendClient("http://api.test/api")

        with pytest.raises(BackendConflict) as excinfo:
            client.create_transaction({"txHash": "abc123"})
        assert excinfo.value.tx_hash == "abc123"
        assert not isinstance(excinfo.value, BackendUnavailable)

    @patch('quillchain.core.backend.requests.Session')
    def test_lookup_by_hash(self, mock_session_cls):
        session = mock_session_cls.return_value
        client = BackendClient("http://api.test/api")

        session.request.return_value = _response(404, None)
        assert client.get_transaction_by_hash("abc123") is None

        session.request.return_value = _response(200, {"id": 7, "txHash": "abc123"})
        assert client.get_transaction_by_hash("abc123")["id"] == 7
        method, url = session.request.call_args[0]
        assert (method, url) == ("GET", "http://api.test/api/blockchain-transactions/hash/abc123")

    @patch('quillchain.core.backend.requests.Session')
    def test_update_transaction_carries_id(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.request.return_value = _response(200, {"id": 7})
        BackendClient("http://api.test/api").update_transaction(7, {"txHash": "abc123"})

        assert session.request.call_args[0] == ("PUT", "http://api.test/api/blockchain-transactions/7")
        assert session.request.call_args[1]["json"] == {"txHash": "abc123", "id": 7}

    @patch('quillchain.core.backend.requests.Session')
    def test_note_status_patch(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.request.return_value = _response(200, {"id": 3})
        BackendClient("http://api.test/api").update_note_status(
            3, "confirmed", tx_hash="abc123", network="preview", wallet_address="addr_test1qq"
        )

        assert session.request.call_args[0] == ("PATCH", "http://api.test/api/notes/3/status")
        assert session.request.call_args[1]["params"] == {
            "status": "confirmed", "txHash": "abc123", "network": "preview", "walletAddress": "addr_test1qq",
        }

    @patch('quillchain.core.backend.requests.Session')
    def test_server_error(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.request.return_value = _response(500, {"error": "boom"})

        with pytest.raises(BackendUnavailable) as excinfo:
            BackendClient("http://api.test/api").create_note({"title": "x"})
        assert excinfo.value.status_code == 500


class TestBackendReadEndpoints:
    @patch('quillchain.core.backend.requests.Session')
    def test_get_note(self, mock_session_cls):
        session = mock_session_cls.return_value
        client = BackendClient("http://api.test/api")

        session.request.return_value = _response(404, None)
        assert client.get_note(9) is None

        session.request.return_value = _response(200, {"id": 9, "title": "Groceries"})
        assert client.get_note(9)["title"] == "Groceries"
        assert session.request.call_args[0] == ("GET", "http://api.test/api/notes/9")

    @patch('quillchain.core.backend.requests.Session')
    def test_list_notes_passes_params(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.request.return_value = _response(200, [{"id": 1}])

        assert BackendClient("http://api.test/api").list_notes({"search": "milk"}) == [{"id": 1}]
        assert session.request.call_args[0] == ("GET", "http://api.test/api/notes")
        assert session.request.call_args[1]["params"] == {"search": "milk"}

    @patch('quillchain.core.backend.requests.Session')
    def test_update_transaction_status(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.request.return_value = _response(200, {"id": 7, "status": "failed"})

        BackendClient("http://api.test/api").update_transaction_status(7, "failed")
        assert session.request.call_args[0] == ("PATCH", "http://api.test/api/blockchain-transactions/7/status")
        assert session.request.call_args[1]["params"] == {"status": "failed"}

    @patch('quillchain.core.backend.requests.Session')
    def test_list_transactions_filters_and_paging(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.request.return_value = _response(200, {"content": [], "totalElements": 0})
        client = BackendClient("http://api.test/api")

        page = client.list_transactions(
            "addr_test1qq", filters={"status": "confirmed", "network": "", "ignored": "x"}, page=2, size=20
        )

        assert page == {"content": [], "totalElements": 0}
        assert session.request.call_args[0] == ("GET", "http://api.test/api/blockchain-transactions")
        assert session.request.call_args[1]["params"] == {
            "page": 2, "size": 20, "walletAddress": "addr_test1qq", "status": "confirmed",
        }

        client.list_transactions()
        assert session.request.call_args[1]["params"] == {"page": 0, "size": 50}

    @patch('quillchain.core.backend.requests.Session')
    def test_note_transactions(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.request.return_value = _response(200, {"content": [{"txHash": "abc123"}]})

        data = BackendClient("http://api.test/api").note_transactions(4)
        assert data["content"][0]["txHash"] == "abc123"
        assert session.request.call_args[0] == ("GET", "http://api.test/api/blockchain-transactions/note/4")
        assert session.request.call_args[1]["params"] == {"page": 0, "size": 10}

    @patch('quillchain.core.backend.requests.Session')
    def test_transaction_stats(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.request.return_value = _response(200, {"total": 3})
        client = BackendClient("http://api.test/api")

        assert client.transaction_stats("addr_test1qq") == {"total": 3}
        assert session.request.call_args[1]["params"] == {"walletAddress": "addr_test1qq"}

        client.transaction_stats()
        assert session.request.call_args[1]["params"] == {}

    @patch('quillchain.core.backend.requests.Session')
    def test_recent_transactions(self, mock_session_cls):
        session = mock_session_cls.return_value
        client = BackendClient("http://api.test/api")

        session.request.return_value = _response(204, None)
        assert client.recent_transactions("addr_test1qq") == []
        assert session.request.call_args[0] == (
            "GET", "http://api.test/api/blockchain-transactions/wallet/addr_test1qq/recent",
        )

        session.request.return_value = _response(200, [{"txHash": "abc123"}])
        assert client.recent_transactions("addr_test1qq") == [{"txHash": "abc123"}]

    @patch('quillchain.core.backend.requests.Session')
    def test_invalid_json_is_unavailable(self, mock_session_cls):
        session = mock_session_cls.return_value
        bad = _response(200, {})
        bad.json.side_effect = ValueError("not json")
        session.request.return_value = bad

        with pytest.raises(BackendUnavailable):
            BackendClient("http://api.test/api").list_notes()

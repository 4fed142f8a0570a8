#!/usr/bin/env python3
"""
Tests for store_clients:
  - GameStoreAPIClient request/error handling and endpoint helpers
  - SteamStoreClient caching, batching and price overviews

Run with:
    python -m pytest tests/test_clients.py
"""
import os
import sys
import unittest
from unittest.mock import MagicMock, patch

import requests

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import store_clients
from store_clients import GameStoreAPIClient, SteamStoreClient
from storefront.cancellation import CancellationToken
from storefront.errors import OperationCancelled, StoreAPIError


def _resp(status=200, payload=None, content=b'{}'):
    mock_resp = MagicMock()
    mock_resp.status_code = status
    mock_resp.ok = 200 <= status < 300
    mock_resp.content = content
    if isinstance(payload, Exception):
        mock_resp.json.side_effect = payload
    else:
        mock_resp.json.return_value = payload
    return mock_resp


# ===========================================================================
# GameStoreAPIClient
# ===========================================================================

class TestBaseUrl(unittest.TestCase):

    def test_explicit_value_wins(self):
        self.assertEqual(store_clients.resolve_base_url('http://api'), 'http://api')

    def test_env_fallback(self):
        with patch.dict(os.environ, {'GAME_STORE_API_BASE_URL': '', 'API_BASE_URL': 'http://env'}):
            self.assertEqual(store_clients.resolve_base_url(None), 'http://env')

    def test_default(self):
        with patch.dict(os.environ, {'GAME_STORE_API_BASE_URL': '', 'API_BASE_URL': ''}):
            self.assertEqual(store_clients.resolve_base_url(None), 'http://localhost:3000')

    def test_url_join(self):
        client = GameStoreAPIClient('http://api/')
        self.assertEqual(client.url('games'), 'http://api/games')
        self.assertEqual(client.url('/games'), 'http://api/games')


class TestRequest(unittest.TestCase):

    def _client(self):
        return GameStoreAPIClient('http://api')

    def test_bearer_header_sent(self):
        client = self._client()
        with patch.object(client.session, 'request', return_value=_resp(200, {})) as req:
            client.get_statistics_summary('jwt')
        args, kwargs = req.call_args
        self.assertEqual(args, ('GET', 'http://api/statistics/summary'))
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer jwt')

    def test_network_error(self):
        client = self._client()
        with patch.object(client.session, 'request',
                          side_effect=requests.RequestException("timeout")):
            with self.assertRaises(StoreAPIError) as ctx:
                client.get_statistics_summary('jwt')
        self.assertEqual(ctx.exception.message, "Server connection error.")
        self.assertIsNone(ctx.exception.status)

    def test_error_message_from_body(self):
        client = self._client()
        resp = _resp(401, {'error': {'message': 'Invalid credentials'}})
        with patch.object(client.session, 'request', return_value=resp):
            with self.assertRaises(StoreAPIError) as ctx:
                client.login('customer', 'a@b.c', 'pw')
        self.assertEqual(ctx.exception.message, 'Invalid credentials')
        self.assertEqual(ctx.exception.status, 401)

    def test_error_message_flat(self):
        client = self._client()
        with patch.object(client.session, 'request', return_value=_resp(400, {'message': 'Bad'})):
            with self.assertRaises(StoreAPIError) as ctx:
                client.get_publisher_profile('jwt')
        self.assertEqual(ctx.exception.message, 'Bad')

    def test_error_message_generic(self):
        client = self._client()
        resp = _resp(500, ValueError("no json"), content=b'<html>')
        with patch.object(client.session, 'request', return_value=resp):
            with self.assertRaises(StoreAPIError) as ctx:
                client.get_publisher_profile('jwt')
        self.assertEqual(ctx.exception.message, 'Request failed (HTTP 500).')

    def test_malformed_success_body(self):
        client = self._client()
        resp = _resp(200, ValueError("no json"), content=b'<html>')
        with patch.object(client.session, 'request', return_value=resp):
            with self.assertRaises(StoreAPIError) as ctx:
                client.get_publisher_profile('jwt')
        self.assertEqual(ctx.exception.message, 'Malformed response from server.')

    def test_cancelled_before_send(self):
        client = self._client()
        token = CancellationToken()
        token.cancel()
        with patch.object(client.session, 'request') as req:
            with self.assertRaises(OperationCancelled):
                client.get_wishlist('jwt', cancel_token=token)
        req.assert_not_called()

    def test_unknown_account_type(self):
        with self.assertRaises(ValueError):
            self._client().login('robot', 'a', 'b')
        with self.assertRaises(ValueError):
            self._client().register('admin', {})


class TestEndpoints(unittest.TestCase):

    def _client(self):
        return GameStoreAPIClient('http://api')

    def test_login_posts_credentials(self):
        client = self._client()
        payload = {'token': 'jwt', 'user': {'id': 1}}
        with patch.object(client.session, 'request', return_value=_resp(200, payload)) as req:
            self.assertEqual(client.login('publisher', 'a@b.c', 'pw'), payload)
        args, kwargs = req.call_args
        self.assertEqual(args, ('POST', 'http://api/auth/publisher/login'))
        self.assertEqual(kwargs['json'], {'email': 'a@b.c', 'password': 'pw'})

    def test_list_games_params_and_slice(self):
        client = self._client()
        games = [{'name': str(i)} for i in range(5)]
        with patch.object(client.session, 'request', return_value=_resp(200, games)) as req:
            result = client.list_games(search='  portal ', skip=-3, limit=3)
        self.assertEqual(len(result), 3)
        self.assertEqual(req.call_args[1]['params'], {'skip': 0, 'limit': 3, 'search': 'portal'})

    def test_list_games_error_returns_empty(self):
        client = self._client()
        with patch.object(client.session, 'request', return_value=_resp(500, {})):
            self.assertEqual(client.list_games(), [])

    def test_list_games_cancellation_propagates(self):
        client = self._client()
        token = CancellationToken()
        token.cancel()
        with self.assertRaises(OperationCancelled):
            client.list_games(search='x', cancel_token=token)

    def test_get_game_fills_image_aliases(self):
        client = self._client()
        with patch.object(client.session, 'request',
                          return_value=_resp(200, {'name': 'X', 'imageUrl': 'http://img'})):
            game = client.get_game('abc')
        self.assertEqual(game['avatarUrl'], 'http://img')

    def test_get_game_error_returns_none(self):
        client = self._client()
        with patch.object(client.session, 'request', return_value=_resp(404, {})):
            self.assertIsNone(client.get_game('abc'))
        self.assertIsNone(client.get_game(''))

    def test_wishlist_accepts_wrapped_items(self):
        client = self._client()
        with patch.object(client.session, 'request',
                          return_value=_resp(200, {'items': [{'name': 'X'}]})) as req:
            self.assertEqual(client.get_wishlist('jwt'), [{'name': 'X'}])
        self.assertEqual(req.call_args[0][1], 'http://api/customers/me/wishlist')

    def test_list_reports_status_param(self):
        client = self._client()
        with patch.object(client.session, 'request', return_value=_resp(200, [])) as req:
            client.list_reports('/customers/me/reports', 'jwt', status='Pending')
        self.assertEqual(req.call_args[1]['params'], {'limit': 200, 'status': 'Pending'})

    def test_update_publisher_profile_patches(self):
        client = self._client()
        with patch.object(client.session, 'request', return_value=_resp(200, {'id': 'p'})) as req:
            client.update_publisher_profile('jwt', {'bankName': 'ACB'})
        self.assertEqual(req.call_args[0][0], 'PATCH')
        self.assertTrue(req.call_args[0][1].endswith('/publisher/me'))
        self.assertEqual(req.call_args[1]['json'], {'bankName': 'ACB'})


# ===========================================================================
# SteamStoreClient
# ===========================================================================

def _steam_payload(*app_ids, success=True):
    return {
        str(a): {'success': success,
                 'data': {'steam_appid': a, 'is_free': False,
                          'price_overview': {'final': 999, 'initial': 1999,
                                             'discount_percent': 50}}}
        for a in app_ids
    }


class TestSteamStoreClient(unittest.TestCase):

    def _client(self, **kwargs):
        return SteamStoreClient(**kwargs)

    def test_app_details_parsed_and_cached(self):
        client = self._client()
        mock_resp = _resp(200, _steam_payload(620))
        with patch.object(client.session, 'get', return_value=mock_resp) as get:
            first = client.get_app_details(620)
            second = client.get_app_details(620)
        self.assertEqual(first['steam_appid'], 620)
        self.assertEqual(first, second)
        self.assertEqual(get.call_count, 1)
        params = get.call_args[1]['params']
        self.assertEqual(params['appids'], '620')
        self.assertEqual(params['cc'], 'us')
        self.assertEqual(params['l'], 'english')

    def test_cache_disabled(self):
        client = self._client(revalidate_seconds=0)
        with patch.object(client.session, 'get', return_value=_resp(200, _steam_payload(620))) as get:
            client.get_app_details(620)
            client.get_app_details(620)
        self.assertEqual(get.call_count, 2)

    def test_unsuccessful_entry_returns_none(self):
        client = self._client()
        with patch.object(client.session, 'get',
                          return_value=_resp(200, _steam_payload(620, success=False))):
            self.assertIsNone(client.get_app_details(620))

    def test_network_error_returns_none(self):
        client = self._client()
        with patch.object(client.session, 'get',
                          side_effect=requests.RequestException("timeout")):
            self.assertIsNone(client.get_app_details(620))

    def test_batch_dedups_and_skips_invalid_ids(self):
        client = self._client()

        def fake_get(url, params=None, timeout=None):
            return _resp(200, _steam_payload(int(params['appids'])))

        with patch.object(client.session, 'get', side_effect=fake_get) as get:
            result = client.get_app_details_batch([620, 620, -1, 'x', 570.0])
        self.assertEqual(sorted(result), [570, 620])
        self.assertEqual(get.call_count, 2)

    def test_price_overviews_single_request(self):
        client = self._client()
        with patch.object(client.session, 'get',
                          return_value=_resp(200, _steam_payload(620, 570))) as get:
            result = client.get_price_overviews([620, 570])
            again = client.get_price_overviews([620])
        self.assertEqual(get.call_count, 1)
        self.assertEqual(get.call_args[1]['params']['appids'], '620,570')
        self.assertEqual(result[570]['price_overview']['final'], 999)
        self.assertIn(620, again)

    def test_cache_capped_evicts_oldest(self):
        client = self._client(max_cache_entries=2)

        def fake_get(url, params=None, timeout=None):
            return _resp(200, _steam_payload(int(params['appids'])))

        with patch.object(client.session, 'get', side_effect=fake_get) as get:
            for app_id in (620, 570, 440):
                client.get_app_details(app_id)
            self.assertEqual(len(client._cache), 2)
            client.get_app_details(570)
            self.assertEqual(get.call_count, 3)
            client.get_app_details(620)
            self.assertEqual(get.call_count, 4)

    def test_cache_purges_expired_entries_when_full(self):
        client = self._client(revalidate_seconds=900, max_cache_entries=3)
        with patch('store_clients.time.monotonic', side_effect=[0, 10, 950, 950]):
            client._cache_put(('a',), {'n': 1})
            client._cache_put(('b',), {'n': 2})
            client._cache_put(('c',), {'n': 3})
            client._cache_put(('d',), {'n': 4})
        self.assertEqual(list(client._cache), [('c',), ('d',)])

    def test_unique_positive_ints(self):
        self.assertEqual(store_clients.unique_positive_ints([3, 3.7, 0, True, 5]), [3, 5])


if __name__ == '__main__':
    unittest.main()

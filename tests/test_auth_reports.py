#!/usr/bin/env python3
"""
Tests for AuthService (session restore, login/register, publisher cache) and
ReportService.

Run with:
    python -m pytest tests/test_auth_reports.py
"""
import json
import os
import sys
import unittest
from unittest.mock import MagicMock

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from storefront.errors import StoreAPIError
from storefront.repositories import MemoryStore, SessionRepository
from storefront.services import AuthService, ReportService
from storefront.services.auth_service import clean_token, normalize_user


def _auth(kv=None, api=None):
    kv = kv if kv is not None else MemoryStore()
    api = api or MagicMock()
    return AuthService(SessionRepository(kv), api), kv, api


class TestHelpers(unittest.TestCase):

    def test_clean_token(self):
        self.assertEqual(clean_token('Bearer abc '), 'abc')
        self.assertEqual(clean_token('bearer   abc'), 'abc')
        self.assertEqual(clean_token('abc'), 'abc')

    def test_normalize_user(self):
        user = normalize_user({'_id': 42, 'publisherName': 'Acme', 'email': 'a@b.c'},
                              'publisher')
        self.assertEqual(user, {'id': '42', 'name': 'Acme', 'email': 'a@b.c',
                                'account_type': 'publisher', 'publisher_name': 'Acme'})


class TestSession(unittest.TestCase):

    def test_login_with_persists_and_notifies(self):
        auth, kv, _ = _auth()
        listener = MagicMock()
        auth.add_listener(listener)
        auth.login_with({'id': '1', 'account_type': 'customer'}, 'Bearer jwt')
        listener.assert_called_once_with('jwt', 'customer')
        self.assertEqual(kv.data['token'], 'jwt')
        self.assertTrue(auth.is_authenticated)

    def test_restore(self):
        kv = MemoryStore({'user': json.dumps({'id': '1', 'account_type': 'customer'}),
                          'token': 'jwt'})
        auth, _, _ = _auth(kv)
        listener = MagicMock()
        auth.add_listener(listener)
        self.assertTrue(auth.restore())
        self.assertEqual(auth.account_type, 'customer')
        listener.assert_called_once_with('jwt', 'customer')

    def test_restore_without_session(self):
        auth, _, _ = _auth()
        listener = MagicMock()
        auth.add_listener(listener)
        self.assertFalse(auth.restore())
        listener.assert_not_called()

    def test_restore_invalid_user_clears_everything(self):
        kv = MemoryStore({'user': json.dumps({'name': 'ghost'}), 'token': 'jwt',
                          'publisher': json.dumps({'id': 'p'})})
        auth, _, _ = _auth(kv)
        self.assertFalse(auth.restore())
        self.assertEqual(kv.data, {})
        self.assertIsNone(auth.publisher)

    def test_logout(self):
        auth, kv, _ = _auth()
        listener = MagicMock()
        auth.login_with({'id': '1', 'account_type': 'customer'}, 'jwt')
        auth.add_listener(listener)
        auth.logout()
        listener.assert_called_once_with(None, None)
        self.assertEqual(kv.data, {})
        self.assertFalse(auth.is_authenticated)


class TestLogin(unittest.TestCase):

    def test_customer_login(self):
        api = MagicMock()
        api.login.return_value = {'token': 'jwt', 'user': {'id': 7, 'email': 'a@b.c'}}
        auth, _, _ = _auth(api=api)
        self.assertEqual(auth.login('customer', ' a@b.c ', 'pw'),
                         {'type': 'success', 'text': 'Logged in!'})
        api.login.assert_called_once_with('customer', 'a@b.c', 'pw')
        self.assertEqual(auth.user['id'], '7')
        self.assertEqual(auth.account_type, 'customer')

    def test_publisher_login_caches_profile(self):
        api = MagicMock()
        api.login.return_value = {'token': 'jwt',
                                  'user': {'id': 'p1', 'publisherName': 'Acme', 'email': 'x@y.z'}}
        auth, kv, _ = _auth(api=api)
        auth.login('publisher', 'x@y.z', 'pw')
        self.assertEqual(auth.publisher, {'id': 'p1', 'name': 'Acme', 'email': 'x@y.z'})
        self.assertIn('publisher', kv.data)

    def test_login_missing_token(self):
        api = MagicMock()
        api.login.return_value = {}
        auth, _, _ = _auth(api=api)
        result = auth.login('customer', 'a@b.c', 'pw')
        self.assertEqual(result['text'], 'Login failed. Please check your email/password.')
        self.assertFalse(auth.is_authenticated)

    def test_login_api_error(self):
        api = MagicMock()
        api.login.side_effect = StoreAPIError('Invalid credentials', 401)
        auth, _, _ = _auth(api=api)
        self.assertEqual(auth.login('customer', 'a@b.c', 'pw'),
                         {'type': 'error', 'text': 'Invalid credentials'})

    def test_register_customer_signs_in(self):
        api = MagicMock()
        api.login.return_value = {'token': 'jwt', 'user': {'id': 1}}
        auth, _, _ = _auth(api=api)
        result = auth.register('customer', {'email': 'a@b.c', 'password': 'pw'})
        self.assertEqual(result['text'], 'Account created! You are now signed in.')
        self.assertTrue(auth.is_authenticated)

    def test_register_publisher_does_not_sign_in(self):
        api = MagicMock()
        auth, _, _ = _auth(api=api)
        result = auth.register('publisher', {'email': 'a@b.c', 'password': 'pw'})
        self.assertEqual(result['text'], 'Registration successful. Please log in.')
        api.login.assert_not_called()

    def test_statistics_only_for_publishers(self):
        api = MagicMock()
        api.get_statistics_summary.return_value = {'games': 3}
        auth, _, _ = _auth(api=api)
        auth.login_with({'id': '1', 'account_type': 'customer'}, 'jwt')
        self.assertIsNone(auth.get_statistics_summary())
        auth.login_with({'id': '2', 'account_type': 'publisher'}, 'jwt')
        self.assertEqual(auth.get_statistics_summary(), {'games': 3})

    def test_refresh_publisher_profile(self):
        api = MagicMock()
        api.get_publisher_profile.return_value = {'id': 'p1', 'website': 'http://acme'}
        auth, _, _ = _auth(api=api)
        auth.login_with({'id': 'p1', 'account_type': 'publisher'}, 'jwt')
        self.assertEqual(auth.refresh_publisher_profile()['website'], 'http://acme')
        self.assertEqual(auth.publisher['website'], 'http://acme')

    def test_update_publisher_profile_sends_editable_fields(self):
        api = MagicMock()
        api.update_publisher_profile.return_value = {'id': 'p1', 'bankName': 'ACB'}
        auth, kv, _ = _auth(api=api)
        auth.login_with({'id': 'p1', 'account_type': 'publisher'}, 'jwt')
        result = auth.update_publisher_profile(
            {'bankName': ' ACB ', 'phoneNumber': None, 'email': 'x@y.z'})
        self.assertEqual(result, {'type': 'success', 'text': 'Profile updated.'})
        api.update_publisher_profile.assert_called_once_with('jwt', {'bankName': 'ACB'})
        self.assertEqual(auth.publisher['bankName'], 'ACB')
        reloaded, _, _ = _auth(kv=kv)
        self.assertEqual(reloaded.publisher['bankName'], 'ACB')

    def test_update_publisher_profile_requires_publisher(self):
        api = MagicMock()
        auth, _, _ = _auth(api=api)
        auth.login_with({'id': '1', 'account_type': 'customer'}, 'jwt')
        self.assertEqual(auth.update_publisher_profile({'bankName': 'ACB'})['type'], 'error')
        api.update_publisher_profile.assert_not_called()

    def test_update_publisher_profile_error_keeps_cache(self):
        api = MagicMock()
        api.update_publisher_profile.side_effect = StoreAPIError('Server connection error.')
        auth, _, _ = _auth(api=api)
        auth.login_with({'id': 'p1', 'account_type': 'publisher'}, 'jwt')
        auth.set_publisher({'id': 'p1'})
        self.assertEqual(auth.update_publisher_profile({'bankName': 'ACB'}),
                         {'type': 'error', 'text': 'Server connection error.'})
        self.assertEqual(auth.publisher, {'id': 'p1'})


class TestReportService(unittest.TestCase):

    def _make(self, account_type='customer'):
        auth, _, api = _auth()
        if account_type:
            auth.login_with({'id': '1', 'account_type': account_type}, 'jwt')
        return ReportService(auth, api), api

    def test_requires_reporting_account(self):
        reports, api = self._make('admin')
        self.assertFalse(reports.can_report)
        self.assertEqual(reports.submit('game', 'g1', 'long enough reason')['type'], 'error')
        api.submit_report.assert_not_called()

    def test_endpoint_per_account_type(self):
        self.assertEqual(self._make('customer')[0].endpoint, '/customers/me/reports')
        self.assertEqual(self._make('publisher')[0].endpoint, '/publisher/me/reports')

    def test_short_reason_rejected(self):
        reports, api = self._make()
        self.assertEqual(reports.submit('game', 'g1', '  too short ')['text'],
                         'Please enter at least 10 characters.')
        api.submit_report.assert_not_called()

    def test_submit_payload(self):
        reports, api = self._make()
        result = reports.submit('game', 620, '  This is spam content  ', 'Spam', 'steam')
        self.assertEqual(result, {'type': 'success', 'text': 'Report submitted. Thank you.'})
        api.submit_report.assert_called_once_with('/customers/me/reports', 'jwt', {
            'targetType': 'game', 'targetId': '620', 'reasonCategory': 'Spam',
            'reasonText': 'This is spam content', 'targetGameType': 'steam',
        })

    def test_unknown_category_falls_back(self):
        reports, api = self._make()
        reports.submit('review', 'r1', 'This is not allowed', 'Weird')
        self.assertEqual(api.submit_report.call_args[0][2]['reasonCategory'], 'Other')

    def test_http_error_message(self):
        reports, api = self._make()
        api.submit_report.side_effect = StoreAPIError('Request failed (HTTP 500).', 500)
        self.assertEqual(reports.submit('game', 'g1', 'long enough reason')['text'],
                         'Failed to submit report (HTTP 500).')

    def test_list_reports(self):
        reports, api = self._make('publisher')
        api.list_reports.return_value = [{'id': 'r1'}]
        self.assertEqual(reports.list_reports('Bogus'), ([{'id': 'r1'}], None))
        api.list_reports.assert_called_once_with('/publisher/me/reports', 'jwt', status='')


if __name__ == '__main__':
    unittest.main()

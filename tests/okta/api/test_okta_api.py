import unittest
from unittest.mock import patch, Mock, MagicMock
import requests
from datetime import datetime, timedelta, timezone

from okta.api.okta_api import OktaAPI, create_headers, MAX_PAGE_SIZE


class TestOktaAPI(unittest.TestCase):
    """Test cases for the OktaAPI base class."""

    def setUp(self):
        """Set up test environment before each test."""
        self.base_url = 'https://example.okta.com/api/v1'
        self.headers = create_headers('test_token')

        # Setup logging capture
        self.logger_mock = patch('okta.api.okta_api.logger').start()
        self.sleep_mock = patch('okta.api.okta_api.time.sleep').start()

        self.api = OktaAPI(self.base_url, self.headers)

    def tearDown(self):
        """Clean up after each test."""
        patch.stopall()

    def _response(self, status_code, body=None, links=None, headers=None):
        response = Mock()
        response.status_code = status_code
        response.json.return_value = body
        response.links = links or {}
        response.headers = headers or {}
        response.text = ''
        return response

    def test_create_headers(self):
        """Test the create_headers function creates SSWS authorization headers."""
        expected_headers = {
            'Authorization': 'SSWS test_token',
            'Accept': 'application/json',
            'Content-Type': 'application/json'
        }
        self.assertEqual(create_headers('test_token'), expected_headers)

    def test_initialization_strips_trailing_slash(self):
        """Test that the base URL is stored without a trailing slash."""
        api = OktaAPI(self.base_url + '/', self.headers)
        self.assertEqual(api.base_url, self.base_url)

    @patch('okta.api.okta_api.requests.get')
    def test_get_success(self, mock_get):
        """Test successful GET request."""
        mock_get.return_value = self._response(200, {'id': '00u1'})

        result = self.api.get('users/00u1')

        mock_get.assert_called_once_with(
            f'{self.base_url}/users/00u1',
            headers=self.headers,
            params=None
        )
        self.assertEqual(result, {'id': '00u1'})

    @patch('okta.api.okta_api.requests.get')
    def test_get_not_found(self, mock_get):
        """Test GET request that fails returns None and logs the error."""
        mock_get.return_value = self._response(404)

        self.assertIsNone(self.api.get('users/missing'))
        self.logger_mock.error.assert_called()

    @patch('okta.api.okta_api.requests.get')
    def test_get_retries_connection_errors(self, mock_get):
        """Test that connection errors are retried with backoff."""
        mock_get.side_effect = [
            requests.exceptions.ConnectionError('reset'),
            self._response(200, [{'id': '00g1'}])
        ]

        result = self.api.get('groups')

        self.assertEqual(result, [{'id': '00g1'}])
        self.assertEqual(mock_get.call_count, 2)
        self.sleep_mock.assert_called_once_with(1)

    @patch('okta.api.okta_api.requests.get')
    def test_get_gives_up_after_max_retries(self, mock_get):
        """Test that GET returns None once every attempt failed."""
        mock_get.side_effect = requests.exceptions.ConnectionError('down')

        self.assertIsNone(self.api.get('groups', max_retries=2))
        self.assertEqual(mock_get.call_count, 2)

    @patch('okta.api.okta_api.requests.get')
    def test_get_all_follows_next_links(self, mock_get):
        """Test that get_all follows rel=next links until the last page."""
        next_url = f'{self.base_url}/users?after=00u2&limit=200'
        mock_get.side_effect = [
            self._response(200, [{'id': '00u1'}, {'id': '00u2'}], links={'next': {'url': next_url}}),
            self._response(200, [{'id': '00u3'}])
        ]

        result = self.api.get_all('users', {'search': 'status eq "ACTIVE"'})

        self.assertEqual([user['id'] for user in result], ['00u1', '00u2', '00u3'])
        first_call, second_call = mock_get.call_args_list
        self.assertEqual(first_call[1]['params'], {'search': 'status eq "ACTIVE"', 'limit': MAX_PAGE_SIZE})
        self.assertEqual(second_call[0][0], next_url)
        self.assertIsNone(second_call[1]['params'])

    @patch('okta.api.okta_api.requests.get')
    def test_get_all_first_page_failure(self, mock_get):
        """Test that get_all returns None when the first page fails."""
        mock_get.return_value = self._response(500)
        self.assertIsNone(self.api.get_all('users'))

    @patch('okta.api.okta_api.requests.get')
    def test_get_all_later_page_failure_keeps_partial_result(self, mock_get):
        """Test that records from earlier pages survive a failure on a later page."""
        mock_get.side_effect = [
            self._response(200, [{'id': '00u1'}], links={'next': {'url': f'{self.base_url}/users?after=00u1'}}),
            self._response(500)
        ]

        self.assertEqual(self.api.get_all('users'), [{'id': '00u1'}])
        self.logger_mock.warning.assert_called()

    @patch('okta.api.okta_api.requests.get')
    def test_get_all_waits_on_rate_limit(self, mock_get):
        """Test that get_all sleeps on 429 and repeats the same page."""
        reset = int((datetime.now(timezone.utc) + timedelta(seconds=10)).timestamp())
        mock_get.side_effect = [
            self._response(429, headers={'X-Rate-Limit-Reset': str(reset)}),
            self._response(200, [{'id': '00u1'}])
        ]

        self.assertEqual(self.api.get_all('users'), [{'id': '00u1'}])
        self.assertEqual(mock_get.call_count, 2)
        slept = self.sleep_mock.call_args[0][0]
        self.assertTrue(0 < slept <= 12)

    @patch('okta.api.okta_api.requests.post')
    def test_post_success_with_params(self, mock_post):
        """Test successful POST request with data and query parameters."""
        mock_post.return_value = self._response(200, {'id': '00u1'})
        data = {'profile': {'login': 'jdoe@example.edu'}}

        result = self.api.post('users', data, params={'activate': 'true'})

        mock_post.assert_called_once_with(
            f'{self.base_url}/users',
            json=data,
            headers=self.headers,
            params={'activate': 'true'}
        )
        self.assertEqual(result, {'id': '00u1'})

    @patch('okta.api.okta_api.requests.put')
    def test_put_no_content(self, mock_put):
        """Test PUT request with 204 No Content returns an empty dict."""
        mock_put.return_value = self._response(204)

        result = self.api.put('groups/00g1/users/00u1')

        mock_put.assert_called_once_with(
            f'{self.base_url}/groups/00g1/users/00u1',
            json=None,
            headers=self.headers
        )
        self.assertEqual(result, {})

    @patch('okta.api.okta_api.requests.delete')
    def test_delete_success(self, mock_delete):
        """Test DELETE request with 204 No Content."""
        mock_delete.return_value = self._response(204)
        self.assertEqual(self.api.delete('groups/00g1'), {})

    @patch('okta.api.okta_api.requests.post')
    def test_empty_body_is_success(self, mock_post):
        """Test that a 200 without a JSON body is treated as success."""
        response = self._response(200)
        response.json.side_effect = requests.exceptions.JSONDecodeError('Expecting value', '', 0)
        mock_post.return_value = response

        self.assertEqual(self.api.post('users/00u1/lifecycle/unlock'), {})

    @patch('okta.api.okta_api.requests.post')
    def test_rate_limited_post_is_retried(self, mock_post):
        """Test that a 429 on POST is retried with the original request."""
        limited = self._response(429)
        limited.request = MagicMock(method='POST', url=f'{self.base_url}/groups', body=b'{}', headers=self.headers)
        mock_post.side_effect = [limited, self._response(200, {'id': '00g1'})]

        result = self.api.post('groups', {})

        self.assertEqual(result, {'id': '00g1'})
        self.assertEqual(mock_post.call_args[1]['data'], b'{}')
        self.sleep_mock.assert_called_once_with(5.0)

    def test_retry_unsupported_method(self):
        """Test that retrying an unsupported method raises ValueError."""
        request = MagicMock(method='PATCH', url='x', body=None, headers={})
        with self.assertRaises(ValueError):
            self.api._retry_request(request)

    def test_wait_for_rate_limit_past_reset(self):
        """Test that a reset time in the past falls back to five seconds."""
        response = self._response(429, headers={'X-Rate-Limit-Reset': '1000'})
        OktaAPI._wait_for_rate_limit(response)
        self.sleep_mock.assert_called_once_with(5.0)


if __name__ == '__main__':
    unittest.main()

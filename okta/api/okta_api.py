import datetime
import logging
import time
from typing import Any, Dict, List, Optional, Union

import requests
from requests.exceptions import ConnectionError

# Set up logging
logger = logging.getLogger(__name__)

# Largest page Okta returns for user and group listings
MAX_PAGE_SIZE = 200

JsonResponse = Optional[Union[Dict[str, Any], List[Dict[str, Any]]]]


def create_headers(api_token: str) -> Dict[str, str]:
    """
    Create HTTP headers for Okta API requests.

    Args:
        api_token (str): The Okta API token for authentication.

    Returns:
        Dict[str, str]: A dictionary containing the required HTTP headers.
    """
    return {
        "Authorization": f"SSWS {api_token}",
        "Accept": "application/json",
        "Content-Type": "application/json",
    }


class OktaAPI:
    """
    Base class for interacting with the Okta management API.

    Failed requests are logged and answered with None. Requests that succeed
    without a body (204 No Content) are answered with an empty dict so that
    callers can tell them apart from failures.

    Attributes:
        base_url (str): The tenant API root, e.g. ``https://example.okta.com/api/v1``.
        headers (Dict[str, str]): HTTP headers to use for API requests.
    """

    def __init__(self, base_url: str, headers: Dict[str, str]):
        """
        Initialize the Okta API client.

        Args:
            base_url (str): The tenant API root.
            headers (Dict[str, str]): HTTP headers to use for API requests.
        """
        self.base_url = base_url.rstrip("/")
        self.headers = headers

    def _url(self, url_suffix: str) -> str:
        return f"{self.base_url}/{url_suffix.lstrip('/')}"

    def get(
        self, url_suffix: str, params: Optional[Dict[str, Any]] = None, max_retries: int = 3
    ) -> JsonResponse:
        """
        Perform a GET request to the specified Okta endpoint.

        Args:
            url_suffix (str): The API endpoint path to append to the base URL.
            params (Optional[Dict[str, Any]]): Query string parameters.
            max_retries (int): Maximum number of attempts on connection errors (default: 3).

        Returns:
            JsonResponse: The JSON response from the API if successful, None otherwise.
        """
        url = self._url(url_suffix)

        for attempt in range(max_retries):
            try:
                response = requests.get(url, headers=self.headers, params=params)
                return self._handle_response(response)
            except (ConnectionError, ConnectionResetError) as e:
                if attempt < max_retries - 1:
                    backoff_time = 2**attempt
                    logger.warning(
                        f"⚠️  Connection error on attempt {attempt + 1}/{max_retries}. "
                        f"Retrying in {backoff_time}s... (URL: {url_suffix[:50]})"
                    )
                    time.sleep(backoff_time)
                    continue
                logger.error(
                    f"❌ Connection error after {attempt + 1} attempts: {str(e)} "
                    f"(URL: {url_suffix[:50]})"
                )
        return None

    def get_all(
        self, url_suffix: str, params: Optional[Dict[str, Any]] = None
    ) -> Optional[List[Dict[str, Any]]]:
        """
        Perform a GET request and follow the ``rel="next"`` links of every page.

        Args:
            url_suffix (str): The API endpoint path to append to the base URL.
            params (Optional[Dict[str, Any]]): Query string parameters for the first page.
                ``limit`` defaults to the largest page size Okta accepts.

        Returns:
            Optional[List[Dict[str, Any]]]: Every record across all pages, or None
            when the first page could not be fetched. A failure on a later page is
            logged and the records gathered so far are returned.
        """
        params = dict(params or {})
        params.setdefault("limit", MAX_PAGE_SIZE)

        url: Optional[str] = self._url(url_suffix)
        results: List[Dict[str, Any]] = []
        first_page = True

        while url:
            try:
                response = requests.get(url, headers=self.headers, params=params)
            except (ConnectionError, ConnectionResetError) as e:
                logger.error(f"❌ Connection error while paging {url_suffix}: {str(e)}")
                return None if first_page else results

            if response.status_code == 429:
                self._wait_for_rate_limit(response)
                continue

            data = self._handle_response(response)
            if data is None:
                if first_page:
                    return None
                logger.warning(f"⚠️  Stopped paging {url_suffix} after {len(results)} records")
                return results

            if isinstance(data, list):
                results.extend(data)
            else:
                results.append(data)

            # The next link already carries the query string and the cursor.
            url = response.links.get("next", {}).get("url")
            params = None
            first_page = False

        logger.debug(f"Fetched {len(results)} records from {url_suffix}")
        return results

    def post(self, url_suffix: str, data: Optional[Any] = None, params: Optional[Dict[str, Any]] = None) -> JsonResponse:
        """
        Perform a POST request to the specified Okta endpoint.

        Args:
            url_suffix (str): The API endpoint path to append to the base URL.
            data (Optional[Any]): Data to be sent in the request body as JSON.
            params (Optional[Dict[str, Any]]): Query string parameters.

        Returns:
            JsonResponse: The JSON response from the API if successful, None otherwise.
        """
        response = requests.post(self._url(url_suffix), json=data, headers=self.headers, params=params)
        return self._handle_response(response)

    def put(self, url_suffix: str, data: Optional[Any] = None) -> JsonResponse:
        """
        Perform a PUT request to the specified Okta endpoint.

        Args:
            url_suffix (str): The API endpoint path to append to the base URL.
            data (Optional[Any]): Data to be sent in the request body as JSON.

        Returns:
            JsonResponse: The JSON response from the API if successful, None otherwise.
        """
        response = requests.put(self._url(url_suffix), json=data, headers=self.headers)
        return self._handle_response(response)

    def delete(self, url_suffix: str) -> JsonResponse:
        """
        Perform a DELETE request to the specified Okta endpoint.

        Args:
            url_suffix (str): The API endpoint path to append to the base URL.

        Returns:
            JsonResponse: An empty dict when the delete succeeded, None otherwise.
        """
        response = requests.delete(self._url(url_suffix), headers=self.headers)
        return self._handle_response(response)

    def _handle_response(self, response: requests.Response) -> JsonResponse:
        """
        Handle the HTTP response from the Okta API.

        Args:
            response (requests.Response): The HTTP response object.

        Returns:
            JsonResponse: The JSON response if successful, an empty dict for a
            successful response without a body, None otherwise.
        """
        if response.status_code in (200, 201):
            logger.debug(f"{response.status_code} | Successful Request!")
            try:
                return response.json()
            except requests.exceptions.JSONDecodeError:
                return {}
        elif response.status_code == 204:
            logger.debug(f"{response.status_code} | Successful Request, no content")
            return {}
        elif response.status_code == 429:
            self._wait_for_rate_limit(response)
            return self._retry_request(response.request)
        else:
            logger.error(f"Request failed: {response.status_code}")
            logger.error(f"Response text: {response.text}")
            return None

    @staticmethod
    def _wait_for_rate_limit(response: requests.Response):
        """Sleep until the rate limit window in ``X-Rate-Limit-Reset`` has passed."""
        reset_time = response.headers.get("X-Rate-Limit-Reset")
        sleep_time = 5.0
        if reset_time:
            try:
                reset_time_dt = datetime.datetime.fromtimestamp(
                    int(reset_time), tz=datetime.timezone.utc
                )
                current_time = datetime.datetime.now(datetime.timezone.utc)
                sleep_time = (reset_time_dt - current_time).total_seconds() + 1
            except ValueError:
                logger.warning(f"Unreadable rate limit reset time: {reset_time}")
            if sleep_time < 0:
                logger.warning(
                    f"Calculated negative sleep time ({sleep_time}s). Using 5s instead."
                )
                sleep_time = 5.0
        else:
            logger.warning("Rate limit exceeded but no reset time provided.")

        logger.info(f"Rate limit exceeded. Sleeping for {sleep_time} seconds.")
        time.sleep(sleep_time)

    def _retry_request(self, request: requests.PreparedRequest) -> JsonResponse:
        """
        Retry a rate limited request.

        Raises:
            ValueError: If the request method is not supported.
        """
        method = request.method.lower() if request.method else ""
        url = request.url
        data = request.body
        headers = request.headers

        logger.info(f"Retrying {method.upper()} request to {url}")

        if method == "get":
            response = requests.get(url, headers=headers)
        elif method == "post":
            response = requests.post(url, data=data, headers=headers)
        elif method == "put":
            response = requests.put(url, data=data, headers=headers)
        elif method == "delete":
            response = requests.delete(url, headers=headers)
        else:
            raise ValueError(f"Unsupported method: {method}")

        return self._handle_response(response)

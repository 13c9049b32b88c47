"""
Disk Lifecycle - Authentication Manager

This module handles Google Cloud authentication and client creation.
Credentials come from Application Default Credentials; nothing here
stores or prompts for secrets.
"""

import logging

import google.auth
from google.auth.exceptions import DefaultCredentialsError, RefreshError
from google.auth.transport.requests import Request
from googleapiclient import discovery
import googleapiclient.http
import google_auth_httplib2
import httplib2

from disk_lifecycle.core.exceptions import AuthenticationError
from disk_lifecycle.core.config import VERSION

logger = logging.getLogger('disk_lifecycle')


class AuthManager:
    """
    Manages Google Cloud authentication and API client creation.

    This class:
    1. Gets credentials using Application Default Credentials (ADC)
    2. Validates and refreshes credentials if needed
    3. Creates authenticated GCP Compute API clients

    Usage:
        auth = AuthManager()
        compute, project = auth.get_client()
    """

    def __init__(self):
        """Initialize the authentication manager."""
        self._credentials = None
        self._project = None
        self._compute = None

    def get_credentials(self):
        """
        Get and validate Google Cloud credentials.

        ADC searches for credentials in this order:
        1. GOOGLE_APPLICATION_CREDENTIALS environment variable
        2. User credentials from gcloud auth application-default login
        3. GCE metadata service (if running on Google Cloud)

        Returns:
            tuple: (credentials, project_id)

        Raises:
            AuthenticationError: If credentials not found or invalid
        """

        try:
            credentials, project = google.auth.default()
        except DefaultCredentialsError:
            raise AuthenticationError(
                "No credentials found. You need to authenticate first.",
                fix="gcloud auth application-default login"
            )

        if not credentials.valid:
            if credentials.expired and getattr(credentials, 'refresh_token', None):
                try:
                    logger.debug("Refreshing expired credentials...")
                    credentials.refresh(Request())
                except RefreshError:
                    raise AuthenticationError(
                        "Credentials expired and refresh failed",
                        fix="gcloud auth application-default login"
                    )

        return credentials, project

    def get_client(self, project=None):
        """
        Get authenticated Google Compute Engine API client.

        Args:
            project: GCP project ID (optional). If not provided, uses the
                    project from credentials.

        Returns:
            tuple: (compute_client, project_id)

        Raises:
            AuthenticationError: If authentication fails
        """

        if not self._credentials:
            self._credentials, self._project = self.get_credentials()

        project = project or self._project

        if not self._compute:
            credentials = self._credentials

            def _request_builder(http, *args, **kwargs):
                """Inject User-Agent header for usage tracking."""
                headers = kwargs.setdefault('headers', {})
                headers['user-agent'] = f'disk-lifecycle-{VERSION}'
                auth_http = google_auth_httplib2.AuthorizedHttp(
                    credentials,
                    http=httplib2.Http()
                )
                return googleapiclient.http.HttpRequest(auth_http, *args, **kwargs)

            try:
                self._compute = discovery.build(
                    'compute',
                    'v1',
                    credentials=credentials,
                    cache_discovery=False,
                    requestBuilder=_request_builder
                )
            except Exception as e:
                raise AuthenticationError(
                    f"Failed to create GCP API client: {str(e)}"
                ) from e

        return self._compute, project

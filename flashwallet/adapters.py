"""GraphQL and REST callers built on TransportExecutor."""

import threading
from typing import Any, Optional

from flashwallet.transport import Call, TransportExecutor


class GraphQLAdapter:
    """Posts ``{query, variables}`` to the single GraphQL endpoint."""

    def __init__(self, executor: TransportExecutor, base_url: str, path: str = "/graphql"):
        self.executor = executor
        self.url = f"{base_url.rstrip('/')}{path}"

    def call(
        self,
        query: str,
        variables: Optional[dict[str, Any]] = None,
        authenticated: bool = True,
        cancel: Optional[threading.Event] = None,
    ) -> dict[str, Any]:
        """
        Run a query or mutation.

        Args:
            query: GraphQL document
            variables: Operation variables
            authenticated: Attach the bearer token (False for login flows)
            cancel: Optional cancellation event

        Returns:
            The ``data`` member of the response
        """
        return self.executor.execute(
            Call(
                method="POST",
                url=self.url,
                json={"query": query, "variables": variables or {}},
                authenticated=authenticated,
                graphql=True,
            ),
            cancel=cancel,
        )


class RestAdapter:
    """JSON-over-HTTP calls relative to the configured base URL."""

    def __init__(self, executor: TransportExecutor, base_url: str):
        self.executor = executor
        self.base_url = base_url.rstrip("/")

    def call(
        self,
        path: str,
        method: str = "GET",
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        authenticated: bool = True,
        cancel: Optional[threading.Event] = None,
    ) -> Any:
        """
        Call a REST endpoint.

        Args:
            path: Endpoint path, appended verbatim to the base URL
            method: HTTP method
            json: Request body
            params: Query string parameters
            headers: Extra headers; auth and API-key headers are added on top
            authenticated: Attach the bearer token
            cancel: Optional cancellation event

        Returns:
            Decoded JSON response body
        """
        return self.executor.execute(
            Call(
                method=method.upper(),
                url=f"{self.base_url}{path}",
                json=json,
                params=params,
                headers=dict(headers or {}),
                authenticated=authenticated,
            ),
            cancel=cancel,
        )

    def get(self, path: str, **kwargs) -> Any:
        return self.call(path, method="GET", **kwargs)

    def post(self, path: str, json: Any = None, **kwargs) -> Any:
        return self.call(path, method="POST", json=json, **kwargs)

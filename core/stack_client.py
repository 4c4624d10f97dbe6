"""
Stack API Client — Handles all content management API interactions.

Every request goes through one requests.Session carrying the stack's
api_key, the management token and (when set) the branch header. Endpoint,
response key and default parameters for each module come from
config.modules.MODULE_DEFINITIONS, so no method branches on module name.

Endpoint reference:
- GET /stacks
- GET /{module endpoint}?query=...&skip=...&limit=...&include_count=true
- GET /{module endpoint}/{uid}
- GET /content_types/{content_type_uid}/entries
- GET {developer hub}/installations        (marketplace app installations)

Pagination: callers page with skip/limit until skip >= count or a page
comes back empty (see iter_query()).

All transport and HTTP failures are raised as core.errors.FetchError.
"""

import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests

from config import Module, get_definition

from .errors import FetchError

logger = logging.getLogger(__name__)


class StackClient:
    """Client for the content management API of one stack."""

    def __init__(
        self,
        host: str,
        stack_api_key: str,
        management_token: str,
        branch_name: Optional[str] = None,
        developer_hub_url: Optional[str] = None,
        timeout: int = 30,
        log=None,
    ):
        self.host = host.rstrip("/")
        self.stack_api_key = stack_api_key
        self.branch_name = branch_name or ""
        self.developer_hub_url = (developer_hub_url or "").rstrip("/")
        self.timeout = timeout
        self.organization_uid: Optional[str] = None
        self.log = log or logger
        self._session = requests.Session()
        self._session.headers.update({
            "api_key": stack_api_key,
            "authorization": management_token,
            "Content-Type": "application/json",
        })
        if self.branch_name:
            self._session.headers["branch"] = self.branch_name

    @classmethod
    def from_config(cls, config, log=None) -> "StackClient":
        return cls(
            host=config.host,
            stack_api_key=config.stack_api_key,
            management_token=config.management_token,
            branch_name=config.branch_name,
            developer_hub_url=config.developer_hub_url,
            timeout=config.request_timeout,
            log=log,
        )

    # ------------------------------------------------------------------
    # Generic module access
    # ------------------------------------------------------------------

    def fetch_by_query(
        self,
        module: Module,
        query: Optional[Dict[str, Any]] = None,
        skip: int = 0,
        limit: int = 100,
        extra_params: Optional[Dict[str, Any]] = None,
        path_params: Optional[Dict[str, str]] = None,
    ) -> Tuple[List[Dict], int]:
        """Fetch one page of a module.

        Returns:
            Tuple of (items, total_count). total_count falls back to the
            page length when the API omits "count".
        """
        module = Module(module)
        definition = get_definition(module)
        if not definition.endpoint or not definition.response_key:
            raise FetchError(f"Module {module.value} cannot be queried", module=module.value)

        params: Dict[str, Any] = {
            "include_count": "true",
            "asc": "updated_at",
            "skip": skip,
            "limit": limit,
        }
        params.update(definition.query_params)
        params.update(extra_params or {})
        if query:
            params["query"] = json.dumps(query)

        path = definition.endpoint.format(**(path_params or {}))
        self.log.debug(f"Fetching {module.value} skip={skip} limit={limit}")
        data = self._get(f"{self.host}{path}", params, module)

        items = data.get(definition.response_key) or []
        return items, int(data.get("count", len(items)))

    def iter_query(
        self,
        module: Module,
        query: Optional[Dict[str, Any]] = None,
        limit: int = 100,
        extra_params: Optional[Dict[str, Any]] = None,
        path_params: Optional[Dict[str, str]] = None,
    ) -> Iterator[Dict]:
        """Yield every item matching the query, following skip/limit pagination."""
        skip = 0
        while True:
            items, count = self.fetch_by_query(
                module, query, skip, limit, extra_params=extra_params, path_params=path_params
            )
            if not items:
                break
            yield from items
            skip += limit
            if skip >= count:
                break

    def fetch_by_uid(self, module: Module, uid: str) -> Dict:
        """Fetch a single item by uid."""
        module = Module(module)
        definition = get_definition(module)
        if not definition.endpoint or not definition.item_key:
            raise FetchError(f"Module {module.value} cannot be fetched by uid", module=module.value)

        data = self._get(f"{self.host}{definition.endpoint}/{uid}", {}, module)
        return data.get(definition.item_key) or {}

    # ------------------------------------------------------------------
    # Module specific calls
    # ------------------------------------------------------------------

    def fetch_stack(self) -> Dict:
        """Fetch stack settings. GET /stacks"""
        definition = get_definition(Module.STACK)
        data = self._get(f"{self.host}{definition.endpoint}", {}, Module.STACK)
        stack = data.get(definition.item_key) or {}
        self.organization_uid = stack.get("org_uid") or self.organization_uid
        return stack

    def fetch_entries(self, content_type_uid: str, skip: int = 0, limit: int = 100,
                      locale: Optional[str] = None,
                      query: Optional[Dict[str, Any]] = None) -> Tuple[List[Dict], int]:
        """Fetch one page of entries for a content type."""
        return self.fetch_by_query(
            Module.ENTRIES,
            query,
            skip=skip,
            limit=limit,
            extra_params={"locale": locale} if locale else None,
            path_params={"content_type_uid": content_type_uid},
        )

    def iter_entries(self, content_type_uid: str, query: Optional[Dict[str, Any]] = None,
                     limit: int = 100, locale: Optional[str] = None) -> Iterator[Dict]:
        """Yield every entry of a content type in one locale.

        Without a locale the API answers in the stack's master locale.
        """
        skip = 0
        while True:
            items, count = self.fetch_entries(content_type_uid, skip, limit, locale=locale, query=query)
            if not items:
                break
            yield from items
            skip += limit
            if skip >= count:
                break

    def fetch_marketplace_installations(self, installation_uids: List[str], limit: int = 100) -> List[Dict]:
        """Fetch marketplace app installations of this stack, filtered to the given uids.

        GET {developer_hub_url}/installations?target_uids={stack_api_key}
        """
        if not self.developer_hub_url:
            raise FetchError("Developer hub URL is not configured", module=Module.MARKETPLACE_APPS.value)

        headers = {"organization_uid": self.organization_uid} if self.organization_uid else {}
        wanted = set(installation_uids)
        installations = []
        skip = 0
        while True:
            params = {"target_uids": self.stack_api_key, "skip": skip, "limit": limit}
            data = self._get(
                f"{self.developer_hub_url}/installations", params, Module.MARKETPLACE_APPS, headers
            )
            page = data.get("data") or []
            installations.extend(i for i in page if i.get("uid") in wanted)
            skip += limit
            if not page or skip >= int(data.get("count", len(page))):
                break
        return installations

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _get(self, url: str, params: Dict[str, Any], module: Module,
             headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        try:
            response = self._session.get(url, params=params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise FetchError(
                f"Failed to fetch {module.value}: HTTP {status}: {e}", module=module.value, status_code=status
            ) from e
        except requests.RequestException as e:
            raise FetchError(f"Failed to fetch {module.value}: {e}", module=module.value) from e
        except ValueError as e:
            raise FetchError(f"Invalid JSON response for {module.value}: {e}", module=module.value) from e

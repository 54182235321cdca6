"""Read-only profile store over the hosted backend's REST interface (PostgREST)."""

from typing import Any, Dict, List, Optional

import requests

from .labels import resolve_label
from .logger import get_logger
from .models import Offering, Profile, Want, opposite_role
from .retry import CircuitBreaker, CircuitOpenError, RetryError, exponential_backoff, should_retry_http_status
from .storage import ProfileNotFoundError, StoreError

logger = get_logger()


class _RetryableStatus(Exception):
    def __init__(self, response: requests.Response):
        super().__init__(f"HTTP {response.status_code} from {response.url}")
        self.response = response


def _log_retry(attempt, exc, delay):
    logger.warning("Hosted store request failed, retrying", attempt=attempt, delay=delay, error=str(exc))


@exponential_backoff(
    max_retries=3,
    base_delay=0.5,
    exceptions=(requests.exceptions.Timeout, requests.exceptions.ConnectionError, _RetryableStatus),
    on_retry=_log_retry,
)
def _get_with_retry(session: requests.Session, url: str, params: Dict[str, str], timeout: float) -> requests.Response:
    resp = session.get(url, params=params, timeout=timeout)
    if should_retry_http_status(resp.status_code):
        raise _RetryableStatus(resp)
    return resp


def _in_filter(values: List[str]) -> str:
    return "in.(" + ",".join(f'"{v}"' for v in values) + ")"


class SupabaseStore:
    """
    Loads profile snapshots from the hosted tables profiles, categories,
    profile_assets and profile_needs.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        """
        Args:
            url: Project URL, e.g. https://<project>.supabase.co
            api_key: Anon or service key sent as apikey and bearer token
            timeout: Per-request timeout in seconds
            session: Optional preconfigured requests session
            breaker: Optional circuit breaker shared across calls
        """
        if not url:
            raise ValueError("Missing SUPABASE_URL. Set env var or pass url.")
        if not api_key:
            raise ValueError("Missing SUPABASE_KEY. Set env var or pass api_key.")
        self.base_url = url.rstrip("/") + "/rest/v1"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        })
        self.breaker = breaker or CircuitBreaker(failure_threshold=5, recovery_timeout=60, expected_exception=RetryError)
        self._categories: Optional[Dict[str, str]] = None

    def _select(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/{table}"
        logger.record_store_call()
        try:
            resp = self.breaker.call(_get_with_retry, self.session, url, params, self.timeout)
            resp.raise_for_status()
            return resp.json()
        except CircuitOpenError as e:
            logger.record_store_failure("CircuitOpen")
            raise StoreError(str(e)) from e
        except RetryError as e:
            logger.record_store_failure("RetryError")
            logger.error("Hosted store unreachable", table=table, error=str(e))
            raise StoreError(f"Hosted store unreachable: {e}") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "HTTPError"
            logger.record_store_failure(f"HTTPError_{status}")
            logger.error("Hosted store request failed", table=table, status=status)
            raise StoreError(f"Hosted store request failed ({status}) for table {table}") from e
        except ValueError as e:
            logger.record_store_failure("InvalidJSON")
            logger.error("Hosted store returned invalid JSON", table=table)
            raise StoreError(f"Hosted store returned invalid JSON for table {table}") from e
        except requests.exceptions.RequestException as e:
            logger.record_store_failure("RequestException")
            raise StoreError(f"Hosted store request error: {e}") from e

    def categories(self) -> Dict[str, str]:
        """Category id to name, fetched once per store."""
        if self._categories is None:
            rows = self._select("categories", {"select": "id,name"})
            self._categories = {row["id"]: row["name"] for row in rows if row.get("id")}
        return self._categories

    def _items_by_profile(self, table: str, profile_ids: List[str]) -> Dict[str, List[Dict[str, Any]]]:
        grouped: Dict[str, List[Dict[str, Any]]] = {pid: [] for pid in profile_ids}
        if not profile_ids:
            return grouped
        rows = self._select(table, {
            "select": "id,profile_id,category_id,description",
            "profile_id": _in_filter(profile_ids),
            "order": "created_at.asc",
        })
        for row in rows:
            grouped.setdefault(row.get("profile_id"), []).append(row)
        return grouped

    def _snapshots(self, rows: List[Dict[str, Any]]) -> List[Profile]:
        ids = [row["id"] for row in rows]
        assets = self._items_by_profile("profile_assets", ids)
        needs = self._items_by_profile("profile_needs", ids)
        categories = self.categories()

        profiles = []
        for row in rows:
            offerings = []
            for item in assets.get(row["id"]) or []:
                label = resolve_label(item.get("category_id"), item.get("description"), categories)
                if label:
                    offerings.append(Offering(label=label, description=item.get("description") or "", id=item.get("id")))
            wants = []
            for item in needs.get(row["id"]) or []:
                label = resolve_label(item.get("category_id"), item.get("description"), categories)
                if label:
                    wants.append(Want(label=label, description=item.get("description") or "", id=item.get("id")))
            profiles.append(Profile(
                id=row["id"],
                user_id=row.get("user_id"),
                full_name=row.get("full_name") or "",
                age=row.get("age") or 0,
                role=row.get("user_type") or "",
                bio=row.get("bio") or "",
                offerings=offerings,
                wants=wants,
            ))
        logger.record_profile_loaded(len(profiles))
        return profiles

    def load_profile(self, user_id: str) -> Profile:
        rows = self._select("profiles", {"select": "*", "user_id": f"eq.{user_id}", "limit": "1"})
        if not rows:
            raise ProfileNotFoundError(f"No profile for user: {user_id}")
        return self._snapshots(rows)[0]

    def list_candidates(self, viewer: Profile, role: Optional[str] = None) -> List[Profile]:
        """Profiles of the given role (default: opposite of the viewer's), oldest first."""
        role = role or opposite_role(viewer.role)
        rows = self._select("profiles", {
            "select": "*",
            "user_type": f"eq.{role}",
            "id": f"neq.{viewer.id}",
            "order": "created_at.asc",
        })
        return self._snapshots(rows)

"""
Firebase Realtime Database client

Implements `TicketStore` on top of the Firebase Admin SDK:
- Blocking SDK calls run in worker threads (`asyncio.to_thread`)
- Listener events arrive on SDK threads as `put`/`patch` events; each
  subscription keeps a local copy of its subtree, applies the events to it and
  hands value or child added/removed notifications back to the event loop
"""
import asyncio
import copy
import json
import os
from typing import Any, Callable, Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, db

from ticketsync.config import Settings, get_settings
from ticketsync.exceptions import StoreError, StoreUnavailableError
from ticketsync.services.store import (
    ChildCallback,
    ErrorCallback,
    Subscription,
    TicketStore,
    ValueCallback,
)
from ticketsync.utils.logger import get_logger

logger = get_logger(__name__)

APP_NAME = "ticketsync"


# ============================================================================
# Initialisation
# ============================================================================

def init_firebase(settings: Optional[Settings] = None) -> firebase_admin.App:
    """
    Initialise (or reuse) the Firebase Admin app for the Realtime Database.

    Credentials come from `firebase_service_account_json` (full JSON) or
    `google_application_credentials` (path); otherwise application default
    credentials are used.

    Raises:
        StoreUnavailableError: Missing or malformed configuration
    """
    settings = settings or get_settings()

    try:
        return firebase_admin.get_app(APP_NAME)
    except ValueError:
        pass

    if not settings.firebase_database_url:
        raise StoreUnavailableError("FIREBASE_DATABASE_URL is not set")
    if not settings.firebase_configured:
        raise StoreUnavailableError(
            "FIREBASE_DATABASE_URL is malformed, expected "
            "https://<project>.firebaseio.com or https://<project>-default-rtdb.<region>.firebasedatabase.app "
            f"(got '{settings.firebase_database_url}')"
        )

    try:
        if settings.firebase_service_account_json:
            cred = credentials.Certificate(json.loads(settings.firebase_service_account_json))
        elif settings.google_application_credentials and os.path.exists(settings.google_application_credentials):
            cred = credentials.Certificate(settings.google_application_credentials)
        else:
            cred = credentials.ApplicationDefault()

        app = firebase_admin.initialize_app(
            cred,
            {"databaseURL": settings.firebase_database_url},
            name=APP_NAME
        )
    except (ValueError, json.JSONDecodeError) as e:
        raise StoreUnavailableError(f"Invalid Firebase credentials: {e}") from e

    logger.info(f"Firebase initialised for {settings.firebase_database_url}")
    return app


# ============================================================================
# Event application
# ============================================================================

def _segments(path: str) -> List[str]:
    return [segment for segment in (path or "").split("/") if segment]


def _put(tree: Any, segments: List[str], value: Any) -> Any:
    """Return `tree` with `value` written at `segments`; None deletes"""
    if not segments:
        return copy.deepcopy(value) if value != {} else None

    node = dict(tree) if isinstance(tree, dict) else {}
    head, rest = segments[0], segments[1:]
    child = _put(node.get(head), rest, value)

    if child is None or child == {}:
        node.pop(head, None)
    else:
        node[head] = child

    # The database has no empty nodes
    return node or None


def apply_event(tree: Any, event_type: str, path: str, data: Any) -> Any:
    """
    Apply one listener event to a local copy of the subscribed subtree.

    Args:
        tree: Current local value (None when empty)
        event_type: `put` (replace at path) or `patch` (merge children at path)
        path: Event path relative to the subscription root
        data: Event payload

    Returns:
        The updated tree
    """
    segments = _segments(path)

    if event_type == "put":
        return _put(tree, segments, data)

    if event_type == "patch":
        for key, value in (data or {}).items():
            tree = _put(tree, segments + _segments(key), value)
        return tree

    logger.debug(f"Ignoring listener event type '{event_type}' at {path}")
    return tree


def diff_children(before: Any, after: Any) -> Dict[str, Dict[str, Any]]:
    """Split a value transition into added and removed direct children"""
    old = before if isinstance(before, dict) else {}
    new = after if isinstance(after, dict) else {}
    return {
        "added": {key: new[key] for key in new if key not in old},
        "removed": {key: old[key] for key in old if key not in new},
    }


# ============================================================================
# Store
# ============================================================================

class FirebaseStore(TicketStore):
    """
    `TicketStore` backed by the Firebase Realtime Database.
    """

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self.app = app or init_firebase()

    def _ref(self, path: str):
        return db.reference(path, app=self.app)

    async def _call(self, operation: str, path: str, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except Exception as e:
            logger.error(f"Firebase {operation} failed for {path}: {e}")
            raise StoreError(operation, path, e) from e

    async def get(self, path: str) -> Any:
        return await self._call("read", path, lambda: self._ref(path).get())

    async def set(self, path: str, value: Any) -> None:
        await self._call("write", path, lambda: self._ref(path).set(value))

    async def update(self, path: str, values: Dict[str, Any]) -> None:
        await self._call("update", path, lambda: self._ref(path).update(values))

    async def delete(self, path: str) -> None:
        await self._call("delete", path, lambda: self._ref(path).delete())

    async def transaction(self, path: str, update_fn: Callable[[Any], Any]) -> Any:
        return await self._call("transaction", path, lambda: self._ref(path).transaction(update_fn))

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def _listen(
        self,
        path: str,
        on_change: Callable[[Any, Any], None],
        on_error: Optional[ErrorCallback]
    ) -> Subscription:
        """
        Attach an SDK listener; `on_change(before, after)` runs on the loop.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        state: Dict[str, Any] = {"tree": None}
        subscription = Subscription(path)

        def deliver(before: Any, after: Any) -> None:
            if subscription.closed:
                return
            try:
                on_change(before, after)
            except Exception as e:
                logger.error(f"Listener callback failed for {path}: {e}", exc_info=True)
                if on_error is not None:
                    on_error(e)

        def handle_event(event) -> None:
            before = state["tree"]
            try:
                after = apply_event(before, event.event_type, event.path, event.data)
            except Exception as e:
                logger.error(f"Could not apply listener event at {path}: {e}")
                if on_error is not None and loop is not None:
                    loop.call_soon_threadsafe(on_error, e)
                return
            state["tree"] = after

            if loop is None:
                deliver(before, after)
                return
            try:
                loop.call_soon_threadsafe(deliver, copy.deepcopy(before), copy.deepcopy(after))
            except RuntimeError:
                # Loop already closed; nothing left to notify
                logger.debug(f"Dropping listener event for {path}: event loop closed")

        try:
            registration = self._ref(path).listen(handle_event)
        except Exception as e:
            logger.error(f"Failed to attach listener on {path}: {e}")
            if on_error is not None:
                on_error(StoreError("listen", path, e))
            subscription.closed = True
            return subscription

        subscription._release = registration.close
        logger.debug(f"Listening on {path}")
        return subscription

    def subscribe_value(
        self,
        path: str,
        on_value: ValueCallback,
        on_error: Optional[ErrorCallback] = None
    ) -> Subscription:
        return self._listen(path, lambda before, after: on_value(after), on_error)

    def subscribe_children(
        self,
        path: str,
        on_added: ChildCallback,
        on_removed: ChildCallback,
        on_error: Optional[ErrorCallback] = None
    ) -> Subscription:
        def on_change(before: Any, after: Any) -> None:
            changes = diff_children(before, after)
            for key, value in changes["removed"].items():
                on_removed(key, value)
            for key, value in changes["added"].items():
                on_added(key, value)

        return self._listen(path, on_change, on_error)


def create_store(settings: Optional[Settings] = None) -> Optional[FirebaseStore]:
    """
    Build the Firebase store, or None when the database is not configured.

    Misconfiguration is detected once here; callers run disabled without it.
    """
    try:
        return FirebaseStore(init_firebase(settings))
    except StoreUnavailableError as e:
        logger.warning(f"Realtime database unavailable, running disabled: {e}")
        return None

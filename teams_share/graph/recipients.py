"""Recipient resolution across Microsoft Graph identity sources.

Sources are queried in a fixed priority order (contacts, people,
directory), normalized to ``Recipient``, and merged into one map keyed by
lowercased email; a later source overwrites an earlier one for the same
key. Manual entries only fill gaps. A single source failing never fails
the resolution.
"""

from __future__ import annotations

import locale
import logging
import time
import unicodedata
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import requests

from teams_share.errors import (
    AuthorizationError,
    NoContactsError,
    SourceUnavailableError,
    TeamsShareError,
)
from teams_share.graph.client import GraphClient
from teams_share.models import AccessToken, Recipient

logger = logging.getLogger(__name__)

DEFAULT_TTL = 600
DIRECTORY_THRESHOLD = 5

Source = Callable[[GraphClient], List[Recipient]]


def _first_address(entries: Optional[Sequence[Dict[str, Any]]]) -> str:
    for entry in entries or []:
        if not isinstance(entry, dict):
            continue
        address = (entry.get("address") or "").strip()
        if address:
            return address
    return ""


def recipient_from_contact(data: Dict[str, Any]) -> Optional[Recipient]:
    """Map a ``/me/contacts`` record; None if it has no email address."""
    email = _first_address(data.get("emailAddresses"))
    if not email:
        return None
    return Recipient(
        id=data.get("id") or email,
        display_name=data.get("displayName") or email,
        email=email,
        department=data.get("department") or "",
        company=data.get("companyName") or "",
        job_title=data.get("jobTitle") or "",
    )


def recipient_from_person(data: Dict[str, Any]) -> Optional[Recipient]:
    """Map a ``/me/people`` record; None if it has no scored email address."""
    email = _first_address(data.get("scoredEmailAddresses"))
    if not email:
        return None
    return Recipient(
        id=data.get("id") or email,
        display_name=data.get("displayName") or email,
        email=email,
        department=data.get("department") or "",
        company=data.get("companyName") or "",
        job_title=data.get("jobTitle") or "",
    )


def recipient_from_user(data: Dict[str, Any]) -> Optional[Recipient]:
    """Map a ``/users`` or ``/me`` record (mail, else userPrincipalName)."""
    email = (data.get("mail") or data.get("userPrincipalName") or "").strip()
    if not email:
        return None
    return Recipient(
        id=data.get("id") or email,
        display_name=data.get("displayName") or email,
        email=email,
        department=data.get("department") or "",
        company=data.get("companyName") or "",
        job_title=data.get("jobTitle") or "",
    )


def _mapped(records: Iterable[Dict[str, Any]], mapper) -> List[Recipient]:
    return [r for r in (mapper(rec) for rec in records if isinstance(rec, dict)) if r is not None]


def fetch_contacts(client: GraphClient) -> List[Recipient]:
    return _mapped(client.list_contacts(), recipient_from_contact)


def fetch_people(client: GraphClient) -> List[Recipient]:
    return _mapped(client.list_people(), recipient_from_person)


def fetch_directory(client: GraphClient) -> List[Recipient]:
    """Organization users; empty when the account has no organization."""
    if not client.get_organization():
        logger.info("Account has no organization; skipping directory lookup")
        return []
    return _mapped(client.list_users(), recipient_from_user)


def merge_recipients(
    batches: Iterable[Iterable[Recipient]],
    manual: Iterable[str] = (),
) -> Dict[str, Recipient]:
    """Merge source batches in order, later batches winning on key collision.

    Manual emails are added last and never replace an existing entry.
    """
    merged: Dict[str, Recipient] = {}
    for batch in batches:
        for recipient in batch:
            merged[recipient.key] = recipient

    for email in manual:
        email = email.strip()
        if email and email.lower() not in merged:
            merged[email.lower()] = Recipient.manual(email)

    return merged


def _collation_key(name: str) -> str:
    """Casefolded, accent-stripped form of ``name`` run through the locale collation."""
    decomposed = unicodedata.normalize("NFKD", name.replace("\x00", ""))
    folded = "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()
    return locale.strxfrm(folded)


def sort_recipients(recipients: Iterable[Recipient]) -> List[Recipient]:
    """Ascending by display name, case- and accent-insensitive, locale-aware."""
    return sorted(recipients, key=lambda r: (_collation_key(r.display_name), r.key))


class RecipientResolver:
    """Resolves the selectable recipients for one signed-in user.

    Holds a single-slot cache of the last result, fresh for ``ttl`` seconds.
    """

    def __init__(
        self,
        manual_recipients: Iterable[str] = (),
        include_directory: bool = False,
        ttl: float = DEFAULT_TTL,
        directory_threshold: int = DIRECTORY_THRESHOLD,
        client_factory: Callable[[AccessToken | str], GraphClient] = GraphClient,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.manual_recipients: List[str] = list(manual_recipients)
        self.include_directory = include_directory
        self.ttl = ttl
        self.directory_threshold = directory_threshold
        self._client_factory = client_factory
        self._clock = clock
        self._cached: Optional[Tuple[float, List[Recipient]]] = None

    def invalidate(self):
        self._cached = None

    def add_manual_recipient(self, email: str):
        if email.lower() not in {m.lower() for m in self.manual_recipients}:
            self.manual_recipients.append(email)
        self.invalidate()

    def _primary_sources(self) -> List[Tuple[str, Source]]:
        return [("contacts", fetch_contacts), ("people", fetch_people)]

    @staticmethod
    def _call_source(name: str, source: Source, client: GraphClient) -> List[Recipient]:
        try:
            return source(client)
        except (
            TeamsShareError,
            requests.RequestException,
            AttributeError,
            KeyError,
            TypeError,
            ValueError,
        ) as exc:
            raise SourceUnavailableError(f"Recipient source '{name}' unavailable: {exc}") from exc

    def _run_source(self, name: str, source: Source, client: GraphClient) -> List[Recipient]:
        try:
            found = self._call_source(name, source, client)
        except SourceUnavailableError as exc:
            logger.warning("Skipping recipient source: %s", exc)
            return []
        logger.info("Recipient source '%s': %d entries", name, len(found))
        return found

    def _fetch_all(self, client: GraphClient) -> List[List[Recipient]]:
        sources = self._primary_sources()
        with ThreadPoolExecutor(max_workers=len(sources)) as executor:
            futures = [
                executor.submit(self._run_source, name, source, client)
                for name, source in sources
            ]
            batches = [f.result() for f in futures]

        if self.include_directory:
            count = len(merge_recipients(batches))
            if count < self.directory_threshold:
                batches.append(self._run_source("directory", fetch_directory, client))
            else:
                logger.debug("Skipping directory source: %d recipients already", count)

        return batches

    def resolve(self, access_token: AccessToken | str) -> List[Recipient]:
        """Deduplicated, sorted recipients for the token's user.

        Raises AuthorizationError if the profile probe is rejected and
        NoContactsError if nothing at all can be resolved.
        """
        if self._cached is not None:
            stamp, recipients = self._cached
            if self._clock() - stamp < self.ttl:
                logger.debug("Using cached recipients")
                return list(recipients)

        client = self._client_factory(access_token)

        try:
            profile = client.get_me()
        except AuthorizationError as exc:
            raise AuthorizationError(
                f"Unable to access your profile ({exc.status_code}). "
                "You may need to sign out and sign in again.",
                status_code=exc.status_code,
            ) from exc

        merged = merge_recipients(self._fetch_all(client))

        if not merged:
            me = recipient_from_user(profile)
            if me is None:
                raise NoContactsError(
                    "Could not find any contacts. Check your permissions or add recipients manually."
                )
            logger.info("No contacts found; using only the current user")
            merged = {me.key: me}

        merged = merge_recipients([merged.values()], manual=self.manual_recipients)
        recipients = sort_recipients(merged.values())

        logger.info("Resolved %d unique recipients", len(recipients))
        self._cached = (self._clock(), recipients)
        return list(recipients)

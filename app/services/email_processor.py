import logging
from typing import Iterable, List, Optional

import httpx
from sqlalchemy.exc import InterfaceError, OperationalError

from app.core.config import settings
from app.core.exceptions import (
    CRMError,
    CommunicationNotFoundError,
    DataStoreUnavailableError,
)
from app.repositories.communication_repository import CommunicationRepository
from app.schemas.email import EmailRecord, EmailRecordIn
from app.schemas.processing import BatchProcessingResult, ProcessingResult
from app.services.contact_store import ContactStore, is_valid_address, normalize_email
from app.services.rule_engine import RuleEngine

logger = logging.getLogger(__name__)


class GraphCategoryFetcher:
    """Reads a message's category labels from Microsoft Graph.

    Only used when a sync hands over an access token but no categories.
    Any failure is logged and treated as "no categories".
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or settings.GRAPH_API_URL).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.GRAPH_TIMEOUT_SECONDS
        self._transport = transport

    async def fetch_categories(self, message_id: str, access_token: str) -> List[str]:
        url = f"{self._base_url}/me/messages/{message_id}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    url,
                    params={"$select": "categories"},
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Graph returned %s for message %s categories",
                exc.response.status_code,
                message_id,
            )
            return []
        except httpx.HTTPError as exc:
            logger.warning("Graph unreachable fetching categories for %s: %s", message_id, exc)
            return []

        try:
            categories = response.json().get("categories") or []
        except ValueError:
            logger.warning("Graph sent a non-JSON body for message %s", message_id)
            return []
        return [c for c in categories if isinstance(c, str)]


class EmailProcessor:
    """Orchestrates rule processing for inbound email records.

    Per email:
    1. Skip it if already processed (unless forced); nothing is written.
    2. Resolve or create the counterpart contact.  A malformed address
       leaves the email without a contact instead of failing.
    3. Insert or update the ``communications`` row.
    4. Run the rule engine.
    5. Store the action outcomes on the row.
    6. Commit.

    A lost database connection rolls the email back, leaving it
    unprocessed for a later retry, and is reported in the result rather
    than raised.
    """

    def __init__(
        self,
        communication_repo: CommunicationRepository,
        contact_store: ContactStore,
        rule_engine: RuleEngine,
        category_fetcher: Optional[GraphCategoryFetcher] = None,
        mailbox_address: Optional[str] = None,
    ) -> None:
        self._communications = communication_repo
        self._contacts = contact_store
        self._engine = rule_engine
        self._category_fetcher = category_fetcher
        self._mailbox = normalize_email(
            mailbox_address if mailbox_address is not None else settings.MAILBOX_ADDRESS
        )

    # ------------------------------------------------------------------
    # Single email
    # ------------------------------------------------------------------

    async def process_email(
        self,
        record: EmailRecordIn,
        access_token: Optional[str] = None,
        force_reprocess: bool = False,
    ) -> ProcessingResult:
        try:
            return await self._process_record(record, access_token, force_reprocess)
        except (OperationalError, InterfaceError) as exc:
            return await self._abandon(
                record.external_id, DataStoreUnavailableError(str(exc.orig or exc))
            )
        except CRMError as exc:
            return await self._abandon(record.external_id, exc)

    async def process_stored_email(
        self, communication_id: int, force_reprocess: bool = False
    ) -> ProcessingResult:
        """Run the rules over an email that is already stored.

        Raises:
            CommunicationNotFoundError: no such email.
        """
        communication = await self._communications.get(communication_id)
        if communication is None:
            raise CommunicationNotFoundError(f"Email {communication_id} not found")
        if communication.processed_by_rules and not force_reprocess:
            return ProcessingResult(
                success=True,
                skipped=True,
                communication_id=communication.id,
                external_id=communication.external_id,
                contact_id=communication.contact_id,
            )

        external_id = communication.external_id
        try:
            if communication.contact_id is None:
                email = EmailRecord.model_validate(communication)
                inbound = email.direction.value == "inbound"
                contact_id = await self._resolve_contact(
                    email.from_address if inbound else email.to_address,
                    email.from_name if inbound else None,
                )
                if contact_id is not None:
                    await self._communications.update_fields(
                        communication_id, contact_id=contact_id
                    )
            return await self._run_rules(communication_id)
        except (OperationalError, InterfaceError) as exc:
            return await self._abandon(
                external_id, DataStoreUnavailableError(str(exc.orig or exc))
            )
        except CRMError as exc:
            return await self._abandon(external_id, exc)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def process_emails(
        self,
        records: Iterable[EmailRecordIn],
        access_token: Optional[str] = None,
        force_reprocess: bool = False,
    ) -> BatchProcessingResult:
        """Process records one after another; one failure never stops the batch."""
        batch = BatchProcessingResult()
        for record in records:
            result = await self.process_email(record, access_token, force_reprocess)
            self._tally(batch, result)
        batch.message = f"Synced {batch.succeeded} of {batch.processed} emails"
        logger.info(
            "Batch done: %d processed, %d succeeded, %d skipped, %d failed",
            batch.processed,
            batch.succeeded,
            batch.skipped,
            batch.failed,
        )
        return batch

    async def reprocess_unprocessed(self, limit: Optional[int] = None) -> BatchProcessingResult:
        """Process stored emails the rules have not seen yet, oldest first."""
        rows = await self._communications.list_unprocessed(
            limit or settings.REPROCESS_BATCH_LIMIT
        )
        ids = [row.id for row in rows]
        batch = BatchProcessingResult()
        for communication_id in ids:
            self._tally(batch, await self.process_stored_email(communication_id))
        batch.message = f"Processed {batch.succeeded} of {batch.processed} emails"
        logger.info("Reprocessed %d stored emails (%d failed)", batch.processed, batch.failed)
        return batch

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _tally(batch: BatchProcessingResult, result: ProcessingResult) -> None:
        batch.processed += 1
        batch.results.append(result)
        if not result.success:
            batch.failed += 1
        elif result.skipped:
            batch.skipped += 1
        else:
            batch.succeeded += 1

    def _infer_direction(self, record: EmailRecordIn) -> str:
        if record.direction is not None:
            return record.direction.value
        if self._mailbox and normalize_email(record.from_address) == self._mailbox:
            return "outbound"
        return "inbound"

    async def _resolve_contact(
        self, address: Optional[str], display_name: Optional[str]
    ) -> Optional[int]:
        if address:
            address = address.replace(";", ",").split(",")[0].strip()
        if not is_valid_address(address):
            logger.warning("Unresolvable sender address %r; storing email without contact", address)
            return None

        if not settings.AUTO_CREATE_SENDER_CONTACTS:
            contact = await self._contacts.find_by_email(address)
            return contact.id if contact else None

        contact, created = await self._contacts.resolve(address, display_name)
        if not created and not contact.name and display_name:
            await self._contacts.update(contact.id, {"name": display_name})
        return contact.id

    async def _process_record(
        self,
        record: EmailRecordIn,
        access_token: Optional[str],
        force_reprocess: bool,
    ) -> ProcessingResult:
        # 1. Idempotence check
        existing = await self._communications.get_by_external_id(record.external_id)
        if existing is not None and existing.processed_by_rules and not force_reprocess:
            logger.debug("Email %s already processed; skipping", record.external_id)
            return ProcessingResult(
                success=True,
                skipped=True,
                communication_id=existing.id,
                external_id=existing.external_id,
                contact_id=existing.contact_id,
            )

        # 2. Contact resolution
        direction = self._infer_direction(record)
        counterpart = record.from_address if direction == "inbound" else record.to_address
        contact_id = await self._resolve_contact(
            counterpart, record.from_name if direction == "inbound" else None
        )

        # 3. Persist the communication
        categories = list(record.categories)
        if not categories and access_token and self._category_fetcher is not None:
            message_id = record.message_id or record.external_id
            if message_id:
                categories = await self._category_fetcher.fetch_categories(
                    message_id, access_token
                )

        fields = record.model_dump(exclude={"direction", "categories"})
        fields["direction"] = direction
        if existing is None:
            communication = await self._communications.create(
                **{k: v for k, v in fields.items() if v is not None},
                categories=categories,
                contact_id=contact_id,
            )
            communication_id = communication.id
        else:
            communication_id = existing.id
            merged = list(existing.categories or [])
            merged.extend(c for c in categories if c not in merged)
            updates = {k: v for k, v in fields.items() if v is not None}
            updates["categories"] = merged
            if existing.contact_id is None and contact_id is not None:
                updates["contact_id"] = contact_id
            await self._communications.update_fields(communication_id, **updates)

        # 4-6. Rules, outcomes, commit
        return await self._run_rules(communication_id)

    async def _run_rules(self, communication_id: int) -> ProcessingResult:
        communication = await self._communications.get(communication_id)
        email = EmailRecord.model_validate(communication)

        engine_result = await self._engine.process_email(email)
        await self._communications.save_rule_results(
            communication_id, engine_result.model_dump(mode="json")
        )
        await self._communications.commit()

        logger.info(
            "Email %s processed: %d rules matched, %d actions",
            communication_id,
            len(engine_result.matched_rules),
            len(engine_result.action_results),
        )
        return ProcessingResult(
            success=True,
            communication_id=communication_id,
            external_id=email.external_id,
            contact_id=email.contact_id,
            rule_results=engine_result,
        )

    async def _abandon(self, external_id: Optional[str], exc: CRMError) -> ProcessingResult:
        logger.error("Processing email %s failed (%s): %s", external_id, exc.kind, exc.detail)
        await self._communications.rollback()
        return ProcessingResult(
            success=False,
            external_id=external_id,
            error=exc.detail,
            error_type=exc.kind,
        )

"""Supabase chapter gateway over the PostgREST HTTP API.

Tables (see the ``chapters`` and ``blocks`` rows):

    chapters(id, project_id, title, status, word_count, last_edited, ...)
    blocks(id, chapter_id, type, content, checked, image_url, position)

Saving goes through a single ``rpc/save_chapter`` call. The database
function upserts the chapter row and replaces its block rows inside one
transaction, so a failed save never leaves a half-written block list.
The function and tables are defined in
``supabase/migrations/20240301000000_save_chapter.sql``.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from blockwriter.models.block import Block, BlockKind
from blockwriter.models.chapter import Chapter, ChapterStatus
from blockwriter.models.config import SupabaseConfig
from blockwriter.services.auth import SessionProvider, StaticSessionProvider
from blockwriter.services.exceptions import ChapterNotFoundError, PersistenceError
from blockwriter.services.gateway import ChapterGateway
from blockwriter.utils.logging import get_logger

logger = get_logger(__name__)

CHAPTER_COLUMNS = "id,project_id,title,status,word_count,last_edited"
BLOCK_COLUMNS = "id,type,content,checked,image_url,position"


def chapter_from_rows(chapter_row: Dict[str, Any], block_rows: List[Dict[str, Any]]) -> Chapter:
    """
    Build a Chapter from a ``chapters`` row and its ``blocks`` rows.

    Blocks are ordered by ``position``. Image blocks take their URL from
    ``content`` and fall back to ``image_url``. A chapter without block
    rows gets a single empty paragraph.

    Raises:
        ValueError: If a row is malformed or has an unknown block type
    """
    blocks = []
    for row in sorted(block_rows, key=lambda r: r.get("position") or 0):
        kind = BlockKind.parse(row.get("type"))
        content = row.get("content") or ""
        if kind is BlockKind.IMAGE and not content:
            content = row.get("image_url") or ""
        blocks.append(Block(id=row["id"], kind=kind, content=content, checked=row.get("checked")))
    if not blocks:
        blocks.append(Block.new(BlockKind.PARAGRAPH))

    return Chapter(
        chapter_id=chapter_row["id"],
        project_id=chapter_row["project_id"],
        title=chapter_row.get("title") or "",
        blocks=blocks,
        status=chapter_row.get("status") or ChapterStatus.DRAFT,
        last_edited=chapter_row.get("last_edited"),
    )


def chapter_to_payload(chapter: Chapter) -> Dict[str, Any]:
    """Arguments for the ``save_chapter`` database function."""
    last_edited = chapter.last_edited or datetime.now(timezone.utc)
    return {
        "p_chapter": {
            "id": chapter.chapter_id,
            "project_id": chapter.project_id,
            "title": chapter.title,
            "status": chapter.status.value,
            "word_count": chapter.word_count,
            "last_edited": last_edited.isoformat(),
        },
        "p_blocks": [
            {
                "id": block.id,
                "chapter_id": chapter.chapter_id,
                "type": block.kind.value,
                "content": block.content,
                "checked": block.checked if block.kind is BlockKind.TODO else None,
                "image_url": block.content if block.kind is BlockKind.IMAGE else None,
                "position": position,
            }
            for position, block in enumerate(chapter.blocks)
        ],
    }


class SupabaseChapterGateway(ChapterGateway):
    """
    Chapter gateway talking to Supabase's REST endpoint with httpx.

    Transient failures (network errors, HTTP 5xx and 429) are retried and,
    once retries run out, reported as retryable PersistenceErrors.
    """

    def __init__(
        self,
        config: SupabaseConfig,
        session_provider: Optional[SessionProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: int = 1,
        retry_delay: float = 1.0,
    ):
        """
        Initialize the gateway.

        Args:
            config: Supabase URL, anon key and timeout
            session_provider: Source of the user's bearer token (defaults to
                config.access_token)
            transport: Optional httpx transport (tests)
            max_retries: Retries on transient errors (default 1)
            retry_delay: Delay in seconds between retries
        """
        self.config = config
        self.session_provider = session_provider or StaticSessionProvider(config.access_token)
        self.base_url = str(config.url).rstrip("/") + "/rest/v1"
        self.timeout = httpx.Timeout(config.timeout_seconds)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._transport = transport

    async def _headers(self) -> Dict[str, str]:
        token = await self.session_provider.get_token()
        return {
            "apikey": self.config.anon_key,
            "Authorization": f"Bearer {token or self.config.anon_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        chapter_id: str,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        headers = await self._headers()
        attempt = 0
        while True:
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.request(
                        method,
                        f"{self.base_url}/{path}",
                        params=params,
                        json=json_body,
                        headers=headers,
                    )
                    response.raise_for_status()
                    if not response.content:
                        return None
                    try:
                        return response.json()
                    except ValueError as e:
                        logger.error(
                            "supabase_response_invalid",
                            path=path,
                            content_type=response.headers.get("content-type"),
                            body=response.text[:500],
                        )
                        raise PersistenceError(
                            chapter_id, f"invalid response from {path}: not JSON"
                        ) from e

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                retryable = status >= 500 or status == 429
                if retryable and attempt < self.max_retries:
                    attempt += 1
                    logger.warning("supabase_request_retry", path=path, status=status, attempt=attempt)
                    await asyncio.sleep(self.retry_delay)
                    continue
                logger.error("supabase_request_failed", path=path, status=status, body=e.response.text[:500])
                raise PersistenceError(chapter_id, f"HTTP {status} from {path}", retryable=retryable) from e

            except httpx.TransportError as e:
                if attempt < self.max_retries:
                    attempt += 1
                    logger.warning("supabase_request_retry", path=path, error=str(e), attempt=attempt)
                    await asyncio.sleep(self.retry_delay)
                    continue
                logger.error("supabase_request_failed", path=path, error=str(e))
                raise PersistenceError(chapter_id, f"network error: {e}") from e

            except httpx.RequestError as e:
                logger.error("supabase_request_failed", path=path, error=str(e))
                raise PersistenceError(chapter_id, f"request error: {e}") from e

    async def load_chapter(self, chapter_id: str) -> Chapter:
        rows = await self._request(
            chapter_id,
            "GET",
            "chapters",
            params={"id": f"eq.{chapter_id}", "select": CHAPTER_COLUMNS},
        )
        if not rows:
            raise ChapterNotFoundError(chapter_id)

        block_rows = await self._request(
            chapter_id,
            "GET",
            "blocks",
            params={
                "chapter_id": f"eq.{chapter_id}",
                "select": BLOCK_COLUMNS,
                "order": "position.asc",
            },
        )
        try:
            chapter = chapter_from_rows(rows[0], block_rows or [])
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            logger.error("supabase_chapter_invalid", chapter_id=chapter_id, error=str(e))
            raise PersistenceError(chapter_id, f"invalid chapter data: {e}", retryable=False) from e

        logger.info("supabase_chapter_loaded", chapter_id=chapter_id, block_count=len(chapter.blocks))
        return chapter

    async def save_chapter(self, chapter: Chapter) -> None:
        await self._request(
            chapter.chapter_id,
            "POST",
            "rpc/save_chapter",
            json_body=chapter_to_payload(chapter),
        )
        logger.info(
            "supabase_chapter_saved",
            chapter_id=chapter.chapter_id,
            block_count=len(chapter.blocks),
            word_count=chapter.word_count,
        )

    async def list_chapters(self, project_id: str) -> List[Chapter]:
        rows = await self._request(
            project_id,
            "GET",
            "chapters",
            params={"project_id": f"eq.{project_id}", "select": "id", "order": "last_edited.desc"},
        )
        return [await self.load_chapter(row["id"]) for row in rows or []]

# src/chatcore/services/backend.py
"""
Client for the chat backend's auxiliary endpoints: web ingestion, plugin
detection, file text extraction and file retrieval.
"""

import logging
from typing import Any, Dict, List, Optional

import aiohttp

from ..config import ChatCoreSettings, get_settings
from ..exceptions import BackendError
from ..models import ChatFile, FileItem
from ..plugins import PluginID

logger = logging.getLogger(__name__)

EMBED_SUCCESS_MESSAGE = "Embed Successful"
NO_PLUGIN_OVERRIDE = "None"

WEB_PROCESS_PATH = "/api/retrieval/process/web"
PLUGIN_DETECTOR_PATH = "/api/v2/chat/plugin-detector"
FILE_TO_TEXT_PATH = "/api/retrieval/file-2v"
RETRIEVE_PATH = "/api/retrieval/retrieve"

DEFAULT_SOURCE_COUNT = 4


class BackendClient:
    """
    Thin aiohttp wrapper around the backend's JSON endpoints.

    Every method raises :class:`BackendError` when the endpoint is unreachable
    or answers with a non-2xx status.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        settings: Optional[ChatCoreSettings] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._settings = settings or get_settings()
        self.base_url = (base_url or self._settings.backend_base_url).rstrip("/")
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._settings.request_timeout)
            )
            self._owns_session = True
        return self._session

    async def _post_json(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with self._get_session().post(url, json=body) as response:
                if response.status >= 400:
                    detail = await response.text()
                    raise BackendError(path, response.status, detail[:500] or response.reason or "error")
                return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            logger.error(f"Request to '{url}' failed: {e}")
            raise BackendError(path, None, str(e))

    async def process_web_url(self, url: str, workspace_id: str, embeddings_provider: Optional[str] = None) -> Dict[str, Any]:
        """
        Submit one URL for scraping and embedding.

        Returns:
            ``{"message": ..., "fileId": ...}``. Only ``message == "Embed Successful"``
            means the page was stored.
        """
        body = {
            "embeddingsProvider": embeddings_provider or self._settings.web_embeddings_provider,
            "workspace_id": workspace_id,
            "url": url,
        }
        logger.debug(f"Submitting URL for ingestion: {url}")
        return await self._post_json(WEB_PROCESS_PATH, body)

    async def detect_plugin(self, payload: Dict[str, Any], selected_plugin: PluginID) -> Optional[PluginID]:
        """
        Ask the backend which plugin should handle the turn.

        Returns None when the detector answers ``"None"`` or an id this client
        does not know.
        """
        data = await self._post_json(
            PLUGIN_DETECTOR_PATH,
            {"payload": payload, "selectedPlugin": PluginID(selected_plugin).value},
        )
        detected = data.get("plugin")
        if not detected or detected == NO_PLUGIN_OVERRIDE:
            return None
        try:
            return PluginID(detected)
        except ValueError:
            logger.warning(f"Plugin detector returned unknown plugin '{detected}'; ignoring.")
            return None

    async def extract_file_text(self, file_ids: List[str]) -> List[Dict[str, str]]:
        """Return ``[{"fileName": ..., "fileContent": ...}]`` for the given files."""
        data = await self._post_json(FILE_TO_TEXT_PATH, {"fileIds": file_ids})
        return list(data.get("files") or [])

    async def retrieve(
        self,
        user_input: str,
        files: List[ChatFile],
        embeddings_provider: str,
        source_count: int = DEFAULT_SOURCE_COUNT,
    ) -> List[FileItem]:
        body = {
            "userInput": user_input,
            "fileIds": [f.id for f in files],
            "embeddingsProvider": embeddings_provider,
            "sourceCount": source_count,
        }
        data = await self._post_json(RETRIEVE_PATH, body)
        results = data.get("results") or []
        logger.debug(f"Retrieved {len(results)} file items from {len(files)} files.")
        return [FileItem.model_validate(item) for item in results]

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

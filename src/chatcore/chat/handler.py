# src/chatcore/chat/handler.py
"""
The turn orchestrator.

:class:`ChatHandler` owns the lifecycle of a chat turn: validation, optional
web ingestion, the optimistic message list update, retrieval, plugin routing,
streaming through a :class:`HostedChatTransport`, persistence, and the
stop/abort sequence. Turn-level failures never reach the caller; they are
turned into notifications and the message list is restored.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from ..cancellation import CancellationToken
from ..config import ChatCoreSettings, get_settings
from ..exceptions import (BackendError, ChatValidationError, IngestionWarning,
                          OversizeInputError)
from ..llm_list import LLM, LLM_LIST, find_model
from ..logging_config import log_display
from ..models import (Chat, ChatFile, ChatMessage, ChatPayload, Feedback,
                      FeedbackKind, MessageImage, Role)
from ..plugins import (FILE_COMMAND_PLUGINS, PluginID, is_command,
                       is_routed_plugin)
from ..services import EMBED_SUCCESS_MESSAGE, BackendClient
from ..storage import ChatRepository
from ..transports import (HostedChatTransport, StreamCallbacks,
                          TransportResult, TurnRequest)
from .helpers import (create_temp_messages, extract_urls, handle_create_chat,
                      handle_create_messages, handle_retrieval,
                      validate_chat_settings)
from .state import (ChatSession, MessageListTransaction, Navigator, Notifier,
                    TurnPhase, UIState)

logger = logging.getLogger(__name__)

WEB_INGESTION_FAILED = "Failed to process websites."
FILE_NOT_FOUND = "File not found in database."
SEND_FAILED = "Failed to send message."


class LoggingNotifier:
    """Default :class:`Notifier` that writes notifications to the log console."""

    def warning(self, message: str) -> None:
        log_display(logger, logging.WARNING, message)

    def error(self, message: str) -> None:
        log_display(logger, logging.ERROR, message)


class _TurnCallbacks(StreamCallbacks):
    """Mirrors streamed text into the assistant placeholder of the session."""

    def __init__(self, session: ChatSession, placeholder_id: str, prefix: str = ""):
        self._session = session
        self._placeholder_id = placeholder_id
        self._prefix = prefix

    def first_token(self) -> None:
        self._session.first_token_received = True
        if self._session.phase == TurnPhase.DISPATCHED:
            self._session.phase = TurnPhase.STREAMING

    def update_text(self, full_text: str) -> None:
        content = self._prefix + full_text
        self._session.chat_messages = [
            cm.model_copy(update={"message": cm.message.model_copy(update={"content": content})})
            if cm.message.id == self._placeholder_id else cm
            for cm in self._session.chat_messages
        ]

    def tool_in_use(self, tool: str) -> None:
        self._session.tool_in_use = tool


class ChatHandler:
    """
    Runs chat turns against one :class:`ChatSession`.

    Args:
        session: Turn-affecting state; mutated in place.
        repository: Persistence collaborator.
        transport: Hosted chat transport used for model and plugin turns.
        backend: Client for ingestion, detection, extraction and retrieval.
        ui: Picker and display flags. A fresh :class:`UIState` by default.
        notifier: Receives user-visible warnings and errors.
        navigator: Receives route changes; route changes are only logged without one.
        settings: Defaults to :func:`chatcore.config.get_settings`.
    """

    def __init__(
        self,
        session: ChatSession,
        repository: ChatRepository,
        transport: HostedChatTransport,
        backend: BackendClient,
        ui: Optional[UIState] = None,
        notifier: Optional[Notifier] = None,
        navigator: Optional[Navigator] = None,
        settings: Optional[ChatCoreSettings] = None,
    ):
        self.session = session
        self.repository = repository
        self.transport = transport
        self.backend = backend
        self.ui = ui or UIState()
        self.notifier = notifier or LoggingNotifier()
        self.navigator = navigator
        self.settings = settings or get_settings()

    # --- Navigation ---

    def _navigate(self, path: str) -> None:
        if self.navigator is None:
            logger.info(f"Navigate to '{path}'.")
            return
        self.navigator.push(path)

    async def handle_select_chat(self, chat: Chat) -> None:
        workspace = self.session.selected_workspace
        if workspace is None:
            return
        await self.handle_stop_message()
        self.ui.is_ready_to_chat = False
        self._navigate(f"/{workspace.id}/chat/{chat.id}")

    async def handle_new_chat(self) -> None:
        """Stop any running turn, reset the chat state and copy default settings."""
        workspace = self.session.selected_workspace
        if workspace is None:
            return

        await self.handle_stop_message()

        self.session.reset_turn_state()
        self.ui.reset()

        if self.session.selected_assistant is not None:
            self.session.chat_settings = self.session.selected_assistant.to_chat_settings()
        elif self.session.selected_preset is not None:
            self.session.chat_settings = self.session.selected_preset.to_chat_settings()

        self.ui.is_ready_to_chat = True
        self._navigate(f"/{workspace.id}/chat")

    # --- Stop ---

    async def handle_stop_message(self) -> None:
        """
        Cancel the running turn and return once it has wound down.

        Awaits the session's idle signal, then the configured grace period.
        Every caller waits, including one arriving after the token was
        already cancelled. Returns immediately when no turn is generating.
        """
        if not self.session.is_generating:
            return
        self.session.phase = TurnPhase.ABORTING
        token = self.session.cancel_token
        if token is not None:
            token.cancel()
        await self.session.wait_until_idle()
        await asyncio.sleep(self.settings.stop_grace_period)

    # --- Feedback ---

    async def handle_send_feedback(
        self,
        chat_message: ChatMessage,
        feedback: str,
        reason: Optional[str] = None,
        detailed_feedback: Optional[str] = None,
        allow_email: Optional[bool] = None,
        allow_sharing: Optional[bool] = None,
    ) -> Feedback:
        """Store feedback for a message; omitted reasons keep the previous values."""
        message = chat_message.message
        previous = chat_message.feedback
        now = datetime.now(timezone.utc)

        insert = Feedback(
            message_id=message.id,
            user_id=message.user_id,
            chat_id=message.chat_id,
            feedback=FeedbackKind(feedback),
            reason=reason if reason is not None else (previous.reason if previous else None),
            detailed_feedback=(
                detailed_feedback if detailed_feedback is not None
                else (previous.detailed_feedback if previous else None)
            ),
            model=message.model,
            created_at=previous.created_at if previous else now,
            updated_at=now,
            sequence_number=message.sequence_number,
            allow_email=allow_email,
            allow_sharing=allow_sharing,
            has_files=len(chat_message.file_items) > 0,
            plugin=message.plugin or PluginID.NONE,
        )
        stored = (await self.repository.create_message_feedback(insert))[0]

        self.session.chat_messages = [
            cm.model_copy(update={"feedback": stored}) if cm.message.id == message.id else cm
            for cm in self.session.chat_messages
        ]
        return stored

    # --- Sending ---

    async def handle_send_continuation(self) -> None:
        await self.handle_send_message(None, self.session.chat_messages, False, True)

    async def handle_send_edit(self, edited_content: str, sequence_number: int) -> None:
        if self.session.selected_chat is None:
            return
        await self.handle_send_message(edited_content, self.session.chat_messages, False, False, sequence_number)

    def resolve_model(self, model_id: Optional[str]) -> Optional[LLM]:
        return find_model(
            model_id,
            self.session.models,
            LLM_LIST,
            self.session.available_local_models,
            self.session.available_openrouter_models,
        )

    async def handle_send_message(
        self,
        message_content: Optional[str],
        chat_messages: List[ChatMessage],
        is_regeneration: bool,
        is_continuation: bool = False,
        edit_sequence_number: Optional[int] = None,
        model: Optional[str] = None,
    ) -> None:
        """
        Run one turn: a new message, an edit, a regeneration or a continuation.

        Args:
            message_content: The user's text. None for continuations.
            chat_messages: The history the turn starts from; restored on failure.
            is_regeneration: Replace the last assistant answer.
            is_continuation: Extend the last assistant answer.
            edit_sequence_number: Drop history at or after this sequence number first.
            model: Model id overriding the chat settings' model.
        """
        session = self.session
        # Another send may start a turn while this one waits on the stop.
        while session.is_generating:
            await self.handle_stop_message()

        selected_plugin = PluginID(session.selected_plugin)
        new_message_images = list(session.new_message_images)
        new_message_files = list(session.new_message_files)
        session.last_error = None

        try:
            session.is_generating = True
            session.phase = TurnPhase.VALIDATING

            chat_settings = session.chat_settings
            model_data = self.resolve_model(model or (chat_settings.model if chat_settings else None))
            validate_chat_settings(
                chat_settings,
                model_data,
                session.profile,
                session.selected_workspace,
                is_continuation,
                message_content,
                new_message_images,
            )
            if is_regeneration and (not chat_messages or chat_messages[-1].message.role != Role.ASSISTANT):
                raise ChatValidationError("There is no assistant message to regenerate")

            # Input and pickers are only cleared once the turn is accepted.
            if not is_regeneration:
                session.user_input = ""
            self.ui.close_pickers()
            session.new_message_images = []

            cancel_token = CancellationToken()
            session.cancel_token = cancel_token

            if (not is_continuation and message_content and session.web_ingestion_enabled
                    and selected_plugin != PluginID.WEB_SCRAPER):
                urls = extract_urls(message_content)
                if urls:
                    session.phase = TurnPhase.WEB_PREPROCESSING
                    await self._ingest_urls(urls, new_message_files)

            with MessageListTransaction(session, chat_messages) as txn:
                result, final_messages, new_images = await self._run_turn(
                    txn, message_content, chat_messages, new_message_files, new_message_images,
                    selected_plugin, cancel_token, model_data, is_regeneration, is_continuation,
                    edit_sequence_number,
                )
                txn.commit(final_messages)

            session.chat_images.extend(new_images)
            session.chat_files = [
                *session.chat_files,
                *[f for f in new_message_files if all(f.id != cf.id for cf in session.chat_files)],
            ]
            session.new_message_files = []
            logger.info(f"Turn finished ({result.finish_reason}), {len(result.full_text)} characters.")
        except OversizeInputError as e:
            self._fail(e.user_message)
        except ChatValidationError as e:
            self._fail(str(e))
        except Exception as e:
            logger.error(f"Chat turn failed: {e}", exc_info=True)
            self._fail(f"{SEND_FAILED} {e}")
        finally:
            session.is_generating = False
            session.first_token_received = False
            session.phase = TurnPhase.IDLE

    def _fail(self, message: str) -> None:
        self.session.phase = TurnPhase.ERROR
        self.session.last_error = message
        self.notifier.error(message)

    async def _run_turn(
        self,
        txn: MessageListTransaction,
        message_content: Optional[str],
        chat_messages: List[ChatMessage],
        new_message_files: List[ChatFile],
        new_message_images: List[MessageImage],
        selected_plugin: PluginID,
        cancel_token: CancellationToken,
        model_data: LLM,
        is_regeneration: bool,
        is_continuation: bool,
        edit_sequence_number: Optional[int],
    ):
        session = self.session
        chat_settings = session.chat_settings
        profile = session.profile
        workspace = session.selected_workspace

        base_messages = list(chat_messages)
        if edit_sequence_number is not None:
            base_messages = [cm for cm in base_messages if cm.message.sequence_number < edit_sequence_number]

        temp_user, temp_assistant = create_temp_messages(
            message_content,
            base_messages,
            chat_settings,
            [image.base64 for image in new_message_images],
            is_continuation,
            selected_plugin,
            model_data.model_id,
        )

        sent_messages = list(base_messages)
        prefix = ""
        if is_regeneration:
            replaced = sent_messages.pop()
            temp_assistant = ChatMessage(message=temp_assistant.message.model_copy(
                update={"sequence_number": replaced.message.sequence_number}
            ))
            sent_messages.append(temp_assistant)
        elif is_continuation:
            prefix = temp_assistant.message.content
            sent_messages[-1] = temp_assistant
        else:
            sent_messages.append(temp_user)
            sent_messages.append(temp_assistant)
        txn.apply(sent_messages)
        session.phase = TurnPhase.DISPATCHED

        retrieved_file_items = []
        if (new_message_files or session.chat_files) and session.use_retrieval and not is_continuation:
            session.tool_in_use = "retrieval"
            retrieved_file_items = await handle_retrieval(
                self.backend,
                message_content or "",
                new_message_files,
                session.chat_files,
                chat_settings.embeddings_provider,
                session.source_count,
            )

        payload = ChatPayload(
            chat_settings=chat_settings,
            workspace_instructions=workspace.instructions or "",
            chat_messages=sent_messages,
            assistant=session.selected_assistant if (session.selected_chat and session.selected_chat.assistant_id) else None,
            message_file_items=retrieved_file_items,
        )

        if not is_continuation and selected_plugin == PluginID.AUTO_PLUGIN_SELECTOR:
            selected_plugin = await self._detect_plugin(payload, selected_plugin)

        request = TurnRequest(
            payload=payload,
            profile=profile,
            model_data=model_data,
            cancel_token=cancel_token,
            is_regeneration=is_regeneration,
            is_continuation=is_continuation,
            is_rag_enabled=session.is_rag_enabled,
            selected_plugin=selected_plugin,
            new_message_images=new_message_images,
            chat_images=list(session.chat_images),
        )
        callbacks = _TurnCallbacks(session, temp_assistant.message.id, prefix)

        result: TransportResult
        if is_routed_plugin(selected_plugin):
            file_data = await self._collect_file_data(message_content, new_message_files, selected_plugin)
            result = await self.transport.handle_hosted_plugins_chat(request, callbacks, selected_plugin, file_data)
        else:
            result = await self.transport.handle_hosted_chat(request, callbacks)

        session.phase = TurnPhase.FINALIZING
        generated_text = prefix + result.full_text

        current_chat = session.selected_chat
        if current_chat is None:
            current_chat = await handle_create_chat(
                self.repository,
                chat_settings,
                profile,
                workspace,
                message_content or "",
                session.selected_assistant,
                new_message_files,
                result.finish_reason,
            )
            session.selected_chat = current_chat
            session.chats = [current_chat, *session.chats]
        else:
            updated_chat = await self.repository.update_chat(current_chat.id, {
                "updated_at": datetime.now(timezone.utc),
                "finish_reason": result.finish_reason,
            })
            session.chats = [updated_chat if c.id == updated_chat.id else c for c in session.chats]
            if session.selected_chat is not None and session.selected_chat.id == updated_chat.id:
                session.selected_chat = updated_chat
            current_chat = updated_chat

        final_messages, new_images = await handle_create_messages(
            self.repository,
            base_messages,
            current_chat,
            profile,
            temp_user,
            temp_assistant.model_copy(update={"message": temp_assistant.message.model_copy(
                update={"plugin": selected_plugin}
            )}),
            generated_text,
            retrieved_file_items,
            new_message_images,
            is_regeneration,
            is_continuation,
            edit_sequence_number,
        )
        return result, final_messages, new_images

    async def _ingest_urls(self, urls: List[str], new_message_files: List[ChatFile]) -> None:
        """Embed each URL; stored pages join the pending files. Failures only warn."""
        session = self.session
        for url in urls:
            try:
                data = await self.backend.process_web_url(
                    url,
                    session.selected_workspace.id,
                    self.settings.web_embeddings_provider,
                )
                if data.get("message") != EMBED_SUCCESS_MESSAGE:
                    raise IngestionWarning(WEB_INGESTION_FAILED)

                file = await self.repository.get_file_by_id(data.get("fileId"))
                if file is None:
                    raise IngestionWarning(FILE_NOT_FOUND)

                known = [*new_message_files, *session.chat_files]
                if all(f.id != file.id for f in known):
                    new_message_files.append(file)
                    session.new_message_files = list(new_message_files)
                    session.files = [*session.files, file]
                    logger.debug(f"Embedded '{url}' as file '{file.id}'.")
            except BackendError as e:
                logger.warning(f"Web ingestion of '{url}' failed: {e}")
                self.notifier.warning(WEB_INGESTION_FAILED)
            except IngestionWarning as e:
                logger.warning(f"Web ingestion of '{url}' failed: {e}")
                self.notifier.warning(str(e))

    async def _detect_plugin(self, payload: ChatPayload, selected_plugin: PluginID) -> PluginID:
        try:
            detected = await self.backend.detect_plugin(payload.model_dump(mode="json"), selected_plugin)
        except BackendError as e:
            logger.warning(f"Plugin detection failed, keeping '{selected_plugin.value}': {e}")
            return selected_plugin
        if detected is None:
            return selected_plugin
        logger.info(f"Plugin detector selected '{detected.value}'.")
        return detected

    async def _collect_file_data(
        self,
        message_content: Optional[str],
        new_message_files: List[ChatFile],
        selected_plugin: PluginID,
    ) -> List[dict]:
        """Text of the attached files for plugins that take file input."""
        if not (message_content and new_message_files and new_message_files[0].type == "text"):
            return []
        if selected_plugin not in FILE_COMMAND_PLUGINS and not is_command(FILE_COMMAND_PLUGINS, message_content):
            return []

        file_ids = [f.id for f in new_message_files if f.type == "text"]
        if not file_ids:
            return []
        try:
            return await self.backend.extract_file_text(file_ids)
        except BackendError as e:
            logger.warning(f"File text extraction failed: {e}")
            self.notifier.warning("Could not read the attached files.")
            return []

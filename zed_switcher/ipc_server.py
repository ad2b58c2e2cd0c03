"""
IPC Server for zed-switcher

JSON-RPC 2.0 server on a Unix socket, one JSON object per line. Used by the
switcher bar UI, the hotkey daemon (activate_index) and the CLI.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from .errors import ErrorCode, SwitcherError, error_response, validate_params
from .models import WorkspaceEntry

if TYPE_CHECKING:
    from .daemon import SwitcherDaemon

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Awaitable[Any]]


class IPCServer:
    """JSON-RPC IPC server for the switcher daemon."""

    def __init__(self, daemon: "SwitcherDaemon", socket_path: Path):
        """
        Initialize IPC server.

        Args:
            daemon: SwitcherDaemon instance
            socket_path: Unix socket to listen on
        """
        self.daemon = daemon
        self.socket_path = socket_path
        self.server: Optional[asyncio.AbstractServer] = None
        self.clients = set()

        self.handlers: Dict[str, Handler] = {
            "ping": self._handle_ping,
            "get_projects": self._handle_get_projects,
            "save_projects": self._handle_save_projects,
            "get_windows": self._handle_get_windows,
            "open_project": self._handle_open_project,
            "activate_index": self._handle_activate_index,
            "open_folder": self._handle_open_folder,
            "select_folder": self._handle_select_folder,
            "get_status": self._handle_get_status,
        }

    async def start(self):
        """Start IPC server."""
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)

        if self.socket_path.exists():
            self.socket_path.unlink()

        self.server = await asyncio.start_unix_server(
            self._handle_client,
            path=str(self.socket_path)
        )

        logger.info(f"IPC server listening on {self.socket_path}")

    async def stop(self):
        """Stop IPC server."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

        if self.socket_path.exists():
            self.socket_path.unlink()

        logger.info("IPC server stopped")

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """
        Handle client connection.

        Args:
            reader: Stream reader
            writer: Stream writer
        """
        self.clients.add(writer)
        logger.debug("Client connected")

        try:
            while True:
                data = await reader.readline()
                if not data:
                    break

                try:
                    request = json.loads(data.decode())
                except (UnicodeDecodeError, json.JSONDecodeError) as e:
                    response = error_response(
                        SwitcherError(ErrorCode.PARSE_ERROR, f"Invalid JSON: {e}")
                    )
                else:
                    response = await self._handle_request(request)

                writer.write((json.dumps(response) + "\n").encode())
                await writer.drain()

        except (ConnectionResetError, BrokenPipeError) as e:
            logger.debug(f"Client connection dropped: {e}")
        except Exception as e:
            logger.error(f"Client handler error: {e}", exc_info=True)
        finally:
            self.clients.discard(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionResetError, BrokenPipeError):
                pass
            logger.debug("Client disconnected")

    async def _handle_request(self, request: Any) -> Dict[str, Any]:
        """
        Handle JSON-RPC request.

        Args:
            request: Decoded JSON-RPC request

        Returns:
            JSON-RPC response dict
        """
        request_id = request.get("id") if isinstance(request, dict) else None

        try:
            if not isinstance(request, dict):
                raise SwitcherError(
                    code=ErrorCode.INVALID_REQUEST,
                    message="Request must be a JSON object"
                )

            method = request.get("method")
            params = request.get("params") or {}
            logger.debug(f"Received request: {method}")

            if not method:
                raise SwitcherError(
                    code=ErrorCode.INVALID_REQUEST,
                    message="Missing 'method' field in request",
                    suggestion="Provide 'method' field in JSON-RPC request"
                )

            if not isinstance(params, dict):
                raise SwitcherError(
                    code=ErrorCode.INVALID_PARAMS,
                    message="'params' must be an object"
                )

            handler = self.handlers.get(method)
            if handler is None:
                raise SwitcherError(
                    code=ErrorCode.METHOD_NOT_FOUND,
                    message=f"Method not found: {method}",
                    suggestion="Check API documentation for available methods",
                    context={"available_methods": sorted(self.handlers)}
                )

            result = await handler(params)

            return {
                "jsonrpc": "2.0",
                "result": result,
                "id": request_id
            }

        except SwitcherError as e:
            logger.error(f"Error in {request.get('method') if isinstance(request, dict) else '?'}: {e.message}")
            return error_response(e, request_id)

        except Exception as e:
            logger.error(f"Unexpected error handling request: {e}", exc_info=True)
            return error_response(e, request_id)

    async def _handle_ping(self, params: Dict[str, Any]) -> Dict[str, Any]:
        validate_params(params, required=[], optional=[])
        return {"status": "ok", "daemon": "zed-switcher"}

    async def _handle_get_projects(self, params: Dict[str, Any]) -> list:
        validate_params(params, required=[], optional=[])
        entries = await self.daemon.project_store.load()
        return [entry.to_json() for entry in entries]

    async def _handle_save_projects(self, params: Dict[str, Any]) -> bool:
        validate_params(params, required=["projects"], optional=[])

        raw = params["projects"]
        if not isinstance(raw, list):
            raise SwitcherError(
                code=ErrorCode.INVALID_PARAMS,
                message="'projects' must be an array"
            )

        try:
            entries = [WorkspaceEntry(**item) for item in raw]
        except (TypeError, ValidationError) as e:
            raise SwitcherError(
                code=ErrorCode.INVALID_PARAMS,
                message=f"Invalid project entry: {e}",
                suggestion="Each project needs a displayName; path and color are optional"
            ) from e

        # Same project added twice from the UI: keep the first
        unique: Dict[str, WorkspaceEntry] = {}
        for entry in entries:
            unique.setdefault(entry.identity, entry)
        if len(unique) < len(entries):
            logger.info(f"Dropped {len(entries) - len(unique)} duplicate project(s)")

        self.daemon.project_store.save(list(unique.values()))
        return True

    async def _handle_get_windows(self, params: Dict[str, Any]) -> list:
        validate_params(params, required=[], optional=[])
        windows = await self.daemon.reconciler.list_windows()
        return [window.to_ipc() for window in windows]

    async def _handle_open_project(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Activate a project by path or name; open it when no window exists."""
        validate_params(params, required=["target"], optional=["open_if_missing"])

        target = params["target"]
        if not isinstance(target, str) or not target:
            raise SwitcherError(
                code=ErrorCode.INVALID_PARAMS,
                message="'target' must be a non-empty string"
            )

        if params.get("open_if_missing", False):
            activated = await self.daemon.resolver.open_project(target)
        else:
            activated = await self.daemon.resolver.activate(target)
        return {"activated": activated}

    async def _handle_activate_index(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Global shortcut: activate the Nth saved project (1-based)."""
        validate_params(params, required=["index"], optional=[])

        index = params["index"]
        slots = self.daemon.config.shortcut_slots
        if not isinstance(index, int) or isinstance(index, bool) or not 1 <= index <= slots:
            raise SwitcherError(
                code=ErrorCode.INVALID_PARAMS,
                message=f"'index' must be an integer between 1 and {slots}",
                context={"index": index}
            )

        return await self.daemon.activate_index(index)

    async def _handle_open_folder(self, params: Dict[str, Any]) -> Dict[str, Any]:
        validate_params(params, required=["path"], optional=[])

        folder = params["path"]
        if not isinstance(folder, str) or not folder.startswith("/"):
            raise SwitcherError(
                code=ErrorCode.INVALID_PARAMS,
                message="'path' must be an absolute path"
            )

        name = await self.daemon.resolver.open_folder(folder)
        return {"opened": name is not None, "displayName": name}

    async def _handle_select_folder(self, params: Dict[str, Any]) -> Dict[str, Any]:
        validate_params(params, required=[], optional=[])
        selected = await self.daemon.folder_picker.pick()
        return {"path": selected}

    async def _handle_get_status(self, params: Dict[str, Any]) -> Dict[str, Any]:
        validate_params(params, required=[], optional=[])
        return self.daemon.get_status()

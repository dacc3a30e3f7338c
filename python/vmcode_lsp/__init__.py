"""
vmcode language server: machine-code annotations for VS Code (stdio JSON-RPC).
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcode import __version__
from mcode.config import ProviderConfig
from mcode.paths import uri_to_path
from mcode.provider import DocumentInfo, MetadataProvider

JsonDict = Dict[str, Any]

SERVER_NAME = "vmcode-lsp"
DEMO_COMMAND = "vmcode.helloWorld"
DEMO_MESSAGE = "Hello World from vmcode!"
LOG_LEVEL_ENV = "VMCODE_LSP_LOG"

# JSON-RPC / LSP error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_NOT_INITIALIZED = -32002

MESSAGE_TYPE_INFO = 3


class ProtocolError(RuntimeError):
    """The input stream is not valid Content-Length framing."""


class MessageParseError(ProtocolError):
    """A framed body could not be turned into a JSON-RPC message."""

    def __init__(self, message: str, *, code: int) -> None:
        super().__init__(message)
        self.code = code


class JSONRPCProtocol:
    """JSON-RPC 2.0 transport with Content-Length framing over stdin/stdout."""

    def __init__(self, reader, writer) -> None:
        self.reader = reader
        self.writer = writer
        self._write_lock = threading.Lock()

    def send_notification(self, method: str, params: Optional[Any] = None) -> None:
        message: JsonDict = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        self._send_message(message)

    def send_response(self, request_id: Any, result: Any = None) -> None:
        self._send_message({"jsonrpc": "2.0", "id": request_id, "result": result})

    def send_error(self, request_id: Any, code: int, message: str, data: Any = None) -> None:
        error: JsonDict = {"code": code, "message": message}
        if data is not None:
            error["data"] = data
        self._send_message({"jsonrpc": "2.0", "id": request_id, "error": error})

    def _send_message(self, message: JsonDict) -> None:
        data = json.dumps(message)
        encoded = data.encode("utf-8")
        header = f"Content-Length: {len(encoded)}\r\n\r\n".encode("ascii")
        with self._write_lock:
            self.writer.write(header)
            self.writer.write(encoded)
            self.writer.flush()

    def read_message(self) -> Optional[JsonDict]:
        """
        Read one framed message.

        Returns None on a clean EOF between messages. Broken framing (a
        missing or non-numeric ``Content-Length``, a truncated body) raises
        ProtocolError because the stream cannot be resynchronized; a complete
        body that is not a JSON object raises MessageParseError and leaves the
        stream positioned at the next message.
        """
        headers: Dict[str, str] = {}
        while True:
            line = self.reader.readline()
            if not line:
                if headers:
                    raise ProtocolError("EOF inside message headers")
                return None
            if isinstance(line, bytes):
                line = line.decode("ascii", errors="replace")
            line = line.strip()
            if not line:
                break
            name, sep, value = line.partition(":")
            if not sep:
                raise ProtocolError(f"malformed header line: {line!r}")
            headers[name.strip().lower()] = value.strip()
        raw_length = headers.get("content-length")
        if raw_length is None:
            raise ProtocolError("message without Content-Length header")
        if not (raw_length.isascii() and raw_length.isdigit()):
            raise ProtocolError(f"invalid Content-Length: {raw_length!r}")
        length = int(raw_length)
        body = self.reader.read(length)
        if len(body) < length:
            raise ProtocolError(f"truncated body ({len(body)} of {length} bytes)")
        try:
            if isinstance(body, bytes):
                body = body.decode("utf-8")
            message = json.loads(body)
        except ValueError as exc:
            raise MessageParseError(f"invalid JSON body: {exc}", code=PARSE_ERROR) from exc
        if not isinstance(message, dict):
            raise MessageParseError("message is not a JSON object", code=INVALID_REQUEST)
        return message


class LSPDecorationChannel:
    """Forwards decoration updates to the client extension as notifications."""

    def __init__(self, protocol: JSONRPCProtocol) -> None:
        self.protocol = protocol

    def create_type(self, decoration_type: str, style: JsonDict) -> None:
        self.protocol.send_notification("vmcode/createDecorationType", {"decorationType": decoration_type, "style": style})

    def set_decorations(self, uri: str, decoration_type: str, decorations: List[JsonDict]) -> None:
        self.protocol.send_notification(
            "vmcode/setDecorations",
            {"uri": uri, "decorationType": decoration_type, "decorations": list(decorations)},
        )

    def dispose_type(self, decoration_type: str) -> None:
        self.protocol.send_notification("vmcode/disposeDecorationType", {"decorationType": decoration_type})


class ServerCommandError(RuntimeError):
    """Raised when a request fails for expected/user-level reasons."""

    def __init__(self, message: str, *, code: int = INTERNAL_ERROR) -> None:
        super().__init__(message)
        self.code = code


class VMCodeLanguageServer:
    """Request dispatcher bridging VS Code to the metadata provider."""

    def __init__(self, protocol: JSONRPCProtocol, config: Optional[ProviderConfig] = None) -> None:
        self.protocol = protocol
        self.logger = logging.getLogger(SERVER_NAME)
        self.config = config or ProviderConfig()
        self.provider: Optional[MetadataProvider] = None
        self._documents: Dict[str, DocumentInfo] = {}
        self._initialized = False
        self._shutdown_requested = False
        self._exit_code: Optional[int] = None

    def serve(self) -> int:
        try:
            while self._exit_code is None:
                try:
                    message = self.protocol.read_message()
                except MessageParseError as exc:
                    self.logger.warning("dropping message: %s", exc)
                    self.protocol.send_error(None, exc.code, str(exc))
                    continue
                except ProtocolError as exc:
                    self.logger.error("framing error, shutting down: %s", exc)
                    break
                if message is None:
                    self.logger.info("EOF on stdin, shutting down")
                    break
                self._handle_message(message)
        finally:
            self._shutdown()
        if self._exit_code is None:
            return 0 if self._shutdown_requested else 1
        return self._exit_code

    @property
    def documents(self) -> Dict[str, DocumentInfo]:
        return self._documents

    # Dispatch -----------------------------------------------------------
    def _handle_message(self, message: JsonDict) -> None:
        method = message.get("method")
        if not method:
            # Responses to server-initiated requests; none are sent.
            return
        params = message.get("params") or {}
        is_request = "id" in message
        request_id = message.get("id")
        handler = getattr(self, _handler_name(method), None)
        if handler is None:
            if is_request:
                self.protocol.send_error(request_id, METHOD_NOT_FOUND, f"Unsupported method: {method}")
            else:
                self.logger.debug("ignoring notification %s", method)
            return
        if is_request and not self._initialized and method != "initialize":
            self.protocol.send_error(request_id, SERVER_NOT_INITIALIZED, "Server not initialized")
            return
        if is_request and self._shutdown_requested and method != "shutdown":
            self.protocol.send_error(request_id, INVALID_REQUEST, "Server is shutting down")
            return
        try:
            result = handler(params)
            if is_request:
                self.protocol.send_response(request_id, result)
        except ServerCommandError as exc:
            self.logger.info("LSP method failed: %s (%s)", method, exc)
            if is_request:
                self.protocol.send_error(request_id, exc.code, str(exc))
        except Exception as exc:  # pragma: no cover - protective
            self.logger.exception("LSP method failed: %s", method)
            if is_request:
                self.protocol.send_error(request_id, INTERNAL_ERROR, str(exc))

    # Lifecycle -----------------------------------------------------------
    def _handle_initialize(self, params: JsonDict) -> JsonDict:
        try:
            self.config = self.config.with_options(params.get("initializationOptions"))
        except ValueError as exc:
            raise ServerCommandError(str(exc), code=INVALID_PARAMS) from exc
        self.provider = MetadataProvider(self.config, channel=LSPDecorationChannel(self.protocol))
        self._initialized = True
        self.logger.info("initialize: %s", self.config.describe())
        return {
            "capabilities": {
                "textDocumentSync": {"openClose": True, "change": 1},
                "hoverProvider": True,
                "executeCommandProvider": {"commands": [DEMO_COMMAND]},
            },
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        }

    def _handle_initialized(self, params: JsonDict) -> None:
        if self.provider is not None:
            self.provider.start()

    def _handle_shutdown(self, params: JsonDict) -> None:
        self._shutdown_requested = True
        self._shutdown()
        return None

    def _handle_exit(self, params: JsonDict) -> None:
        self._exit_code = 0 if self._shutdown_requested else 1

    # Documents -----------------------------------------------------------
    def _handle_textDocument_didOpen(self, params: JsonDict) -> None:  # noqa: N802
        item = params.get("textDocument") or {}
        uri = item.get("uri")
        if not uri:
            return
        document = DocumentInfo(uri_to_path(uri), item.get("languageId"), uri=uri)
        document.set_text(item.get("text") or "")
        self._documents[uri] = document

    def _handle_textDocument_didChange(self, params: JsonDict) -> None:  # noqa: N802
        uri = (params.get("textDocument") or {}).get("uri")
        document = self._documents.get(uri) if uri else None
        if document is None:
            return
        changes = params.get("contentChanges") or []
        for change in changes:
            if "range" not in change and "text" in change:
                document.set_text(change["text"])

    def _handle_textDocument_didClose(self, params: JsonDict) -> None:  # noqa: N802
        uri = (params.get("textDocument") or {}).get("uri")
        if uri:
            self._documents.pop(uri, None)

    def _handle_textDocument_hover(self, params: JsonDict) -> Optional[JsonDict]:  # noqa: N802
        if self.provider is None:
            return None
        document = self._document_from_params(params)
        position = params.get("position") or {}
        line = _to_int(position.get("line"))
        if document is None or line is None:
            return None
        return self.provider.provide_hover(document, line)

    # Editor events -------------------------------------------------------
    def _handle_vmcode_activeEditorChanged(self, params: JsonDict) -> None:  # noqa: N802
        if self.provider is None:
            return
        self.provider.on_active_editor_changed(self._document_from_params(params))

    def _handle_vmcode_selectionChanged(self, params: JsonDict) -> None:  # noqa: N802
        if self.provider is None:
            return
        document = self._document_from_params(params)
        line = _selection_line(params)
        if line is None:
            return
        self.provider.on_selection_changed(document, line)

    # Commands ------------------------------------------------------------
    def _handle_workspace_executeCommand(self, params: JsonDict) -> None:  # noqa: N802
        command = params.get("command")
        if command != DEMO_COMMAND:
            raise ServerCommandError(f"Unknown command: {command}", code=INVALID_PARAMS)
        self.protocol.send_notification("window/showMessage", {"type": MESSAGE_TYPE_INFO, "message": DEMO_MESSAGE})
        return None

    # Helpers -------------------------------------------------------------
    def _document_from_params(self, params: JsonDict) -> Optional[DocumentInfo]:
        item = params.get("textDocument") or {}
        uri = item.get("uri") or params.get("uri")
        if not uri:
            return None
        language_id = item.get("languageId") or params.get("languageId")
        document = self._documents.get(uri)
        if document is None:
            document = DocumentInfo(uri_to_path(uri), language_id, uri=uri)
            self._documents[uri] = document
        elif language_id:
            document.language_id = language_id
        return document

    def _shutdown(self) -> None:
        if self.provider is not None:
            try:
                self.provider.stop()
            except Exception:
                self.logger.debug("provider stop failed", exc_info=True)


def _handler_name(method: str) -> str:
    return "_handle_" + method.replace("/", "_").replace("$", "_")


def _to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value, 0)
        except ValueError:
            return None
    return None


def _selection_line(params: JsonDict) -> Optional[int]:
    if "line" in params:
        return _to_int(params.get("line"))
    position = params.get("position")
    if isinstance(position, dict):
        return _to_int(position.get("line"))
    selections = params.get("selections")
    if isinstance(selections, list) and selections:
        first = selections[0]
        if isinstance(first, dict):
            start = first.get("start") or first.get("active") or {}
            return _to_int(start.get("line"))
    return None


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="vmcode language server (stdio)")
    parser.add_argument("--stdio", action="store_true", help="Accepted for client compatibility; stdio is the only transport")
    parser.add_argument("--log-file")
    parser.add_argument("--log-level", default=os.environ.get(LOG_LEVEL_ENV, "INFO"))
    parser.add_argument("--key-scheme", choices=["unqualified", "file-qualified"])
    parser.add_argument("--merge-policy", choices=["overwrite", "accumulate"])
    parser.add_argument("--path-convention", choices=["tool", "line-pc"])
    parser.add_argument("--headers", action="store_true", default=None, help="Also annotate .h headers under the marker directory")
    parser.add_argument("--header-marker")
    parser.add_argument("--poll-interval", type=float)
    return parser


def config_from_args(args: argparse.Namespace, environ: Optional[Dict[str, str]] = None) -> ProviderConfig:
    config = ProviderConfig().with_environment(environ)
    return config.with_options(
        {
            "key_scheme": args.key_scheme,
            "merge_policy": args.merge_policy,
            "path_convention": args.path_convention,
            "recognize_headers": args.headers,
            "header_marker": args.header_marker,
            "poll_interval": args.poll_interval,
        }
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args, _ = parser.parse_known_args(argv)
    if args.log_file:
        log_path = Path(args.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=args.log_file,
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        force=True,
    )
    logger = logging.getLogger(SERVER_NAME)
    try:
        config = config_from_args(args)
    except ValueError as exc:
        parser.error(str(exc))
    protocol = JSONRPCProtocol(sys.stdin.buffer, sys.stdout.buffer)
    server = VMCodeLanguageServer(protocol, config)
    logger.info("vmcode language server starting (pid=%s, version=%s)", os.getpid(), __version__)
    try:
        code = server.serve()
        logger.info("vmcode language server exiting (code=%s)", code)
        return code
    except Exception:
        logger.exception("vmcode language server crashed")
        raise

"""
One-shot local HTTP listener for the OAuth2 authorization-code redirect

The listener performs exactly one authorization-code capture per call to
capture():

1. Bind http://localhost:<port> (default 8008)
2. Open the user's browser on the root path
3. GET /          -> 302 to https://accounts.spotify.com/authorize?...
4. GET /callback  -> read `code` (or `error`), answer with a short page
5. Shut the server down and release the port

The port is released in a finally block on every exit path: a captured
code, a denied consent (callback without `code`), a timeout, a cancel()
from another thread, or an exception while opening the browser.
"""

import threading
import urllib.parse
import webbrowser
from dataclasses import dataclass
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Callable, Optional

from ..exceptions import CallbackError
from ..utils.logger import get_logger
from .settings import SPOTIFY_ACCOUNTS_BASE_URL

logger = get_logger(__name__)

DEFAULT_REDIRECT_PORT = 8008
DEFAULT_CALLBACK_TIMEOUT = 300


def redirect_uri_for(port: int) -> str:
    """Redirect URI registered with the provider for a listener on `port`"""
    return f"http://localhost:{port}/callback"


@dataclass(frozen=True)
class CallbackResult:
    """
    What the provider sent back to /callback

    Attributes:
        code: Authorization code, None when consent was denied
        error: Provider error code (e.g. 'access_denied'), if any
    """
    code: Optional[str] = None
    error: Optional[str] = None


class CallbackHandler(BaseHTTPRequestHandler):
    """
    HTTP request handler for the redirect surface

    The parent server carries `authorize_url`, `callback_result` and
    `callback_event`; the handler only reads the first and fills the others.
    """

    def do_GET(self):
        parsed_url = urllib.parse.urlparse(self.path)

        # Initial route: hand the browser over to the consent page
        if parsed_url.path == '/':
            self.send_response(302)
            self.send_header('Location', self.server.authorize_url)
            self.end_headers()
            return

        if parsed_url.path == '/callback':
            query_params = urllib.parse.parse_qs(parsed_url.query)
            code = query_params.get('code', [None])[0]
            error = query_params.get('error', [None])[0]

            if code:
                body = "Authorization Successful. You can close this window."
            else:
                body = f"Authorization Failed: {error or 'no code received'}. You can close this window."

            self.send_response(200)
            self.send_header('Content-Type', 'text/plain; charset=utf-8')
            self.end_headers()
            self.wfile.write(body.encode('utf-8'))

            self.server.callback_result = CallbackResult(code=code, error=error)
            self.server.callback_event.set()
            return

        self.send_response(404)
        self.end_headers()

    def log_message(self, format, *args):
        """Route http.server access logs to the debug log instead of stderr"""
        logger.debug("callback listener: " + format % args)


class LocalCallbackListener:
    """
    Captures one authorization code through a transient local HTTP server

    Args:
        client_id: Spotify application client id
        scope: Space separated scopes to request
        port: Local port; must match the redirect URI registered with the app
        show_dialog: Force the consent dialog even if the user already approved
        timeout: Seconds to wait for the callback before giving up
        open_browser: Callable taking a URL; webbrowser.open by default
        host: Interface to bind
    """

    def __init__(
        self,
        client_id: str,
        scope: str = "",
        port: int = DEFAULT_REDIRECT_PORT,
        show_dialog: bool = True,
        timeout: float = DEFAULT_CALLBACK_TIMEOUT,
        open_browser: Callable[[str], object] = webbrowser.open,
        host: str = 'localhost',
        accounts_base_url: str = SPOTIFY_ACCOUNTS_BASE_URL,
    ):
        self.client_id = client_id
        self.scope = scope
        self.port = port
        self.show_dialog = show_dialog
        self.timeout = timeout
        self.open_browser = open_browser
        self.host = host
        self.accounts_base_url = accounts_base_url.rstrip('/')
        self._cancelled = threading.Event()
        self._server: Optional[HTTPServer] = None

    @property
    def redirect_uri(self) -> str:
        return redirect_uri_for(self.port)

    @property
    def local_url(self) -> str:
        return f"http://localhost:{self.port}"

    @property
    def authorize_url(self) -> str:
        """Consent page URL the root path redirects to"""
        params = {
            'client_id': self.client_id,
            'response_type': 'code',
            'redirect_uri': self.redirect_uri,
            'scope': self.scope,
            'show_dialog': 'true' if self.show_dialog else 'false',
        }
        return f"{self.accounts_base_url}/authorize?{urllib.parse.urlencode(params)}"

    def cancel(self) -> None:
        """
        Abort a pending capture() from another thread

        A cancel that arrives before capture() has bound its port still
        aborts that capture; the flag is reset once capture() returns.
        """
        self._cancelled.set()
        server = self._server
        if server is not None:
            server.callback_event.set()

    def capture(self) -> CallbackResult:
        """
        Run the listener until the provider redirects back once

        Returns:
            CallbackResult; `code` is None when the user denied consent

        Raises:
            CallbackError: When the port cannot be bound, the deadline passes,
                           or cancel() is called
        """
        try:
            server = HTTPServer((self.host, self.port), CallbackHandler)
        except OSError as e:
            self._cancelled.clear()
            raise CallbackError(
                f"Could not bind callback listener on port {self.port}: {e}",
                reason='bind_failed',
                details={'port': self.port, 'original_error': str(e)}
            ) from e

        server.authorize_url = self.authorize_url
        server.callback_result = None
        server.callback_event = threading.Event()
        self._server = server

        server_thread = threading.Thread(target=server.serve_forever, name='spotifetch-callback')
        server_thread.daemon = True
        server_thread.start()

        try:
            if self._cancelled.is_set():
                raise CallbackError("Authorization was cancelled", reason='cancelled')

            logger.console_info(f"Opening browser for Spotify authorization: {self.local_url}")
            logger.console_info(f"If the browser doesn't open, visit: {self.authorize_url}")
            self.open_browser(self.local_url)

            if not server.callback_event.wait(self.timeout):
                raise CallbackError(
                    f"No authorization callback received within {self.timeout} seconds",
                    reason='timeout',
                    details={'port': self.port}
                )

            if self._cancelled.is_set():
                raise CallbackError("Authorization was cancelled", reason='cancelled')

            result = server.callback_result or CallbackResult()
            logger.debug(f"Callback received (code present: {bool(result.code)}, error: {result.error})")
            return result
        finally:
            server.shutdown()
            server.server_close()
            server_thread.join(timeout=5)
            self._server = None
            self._cancelled.clear()
            logger.debug(f"Callback listener on port {self.port} closed")

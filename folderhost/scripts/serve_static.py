#!/usr/bin/env python3
"""
Static file server for a single hosted directory.

Features:
- Serves files rooted at the hosted directory, on the first free port from
  8000 up unless one is given.
- Confines every request to the hosted directory (blocks path traversal and,
  unless --follow-symlinks is given, any symlink on the requested path).
- Renders directory listings and error pages from embedded HTML templates.
- With --allow-write, accepts PUT (staged in the temporary directory and
  moved into place once fully received) and DELETE.

Usage:
  folderhost                         # host the current directory
  folderhost site -p 9000            # host ./site on port 9000
  folderhost -w --temp-dir /var/tmp  # accept writes, staging under /var/tmp
"""
from __future__ import annotations

import argparse
import html
import io
import os
import shutil
import sys
from http import HTTPStatus
from http.server import ThreadingHTTPServer, SimpleHTTPRequestHandler
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import quote

from .. import __version__
from ..config import Configuration, get_config
from ..errors import (
    ConfigError,
    IncompleteWrite,
    NotFound,
    PathError,
)
from ..paths import contains_staging, is_within, resolve_path, resolve_write_target, url_path
from ..ports import allocate_port
from ..staging import commit_write, discard_write, stage_write
from ..util import (
    DIRECTORY_LISTING_HTML,
    ERROR_HTML,
    ContentClassification,
    classify,
    log,
    render,
    uppercase_first,
)

INDEX_FILES = ("index.html", "index.htm")


class FolderHostServer(ThreadingHTTPServer):
    """Threaded HTTP server carrying the process configuration"""

    def __init__(self, server_address: Tuple[str, int], config: Configuration, quiet: bool = False):
        self.config = config
        self.quiet = quiet
        super().__init__(server_address, FolderHostHandler)


class FolderHostHandler(SimpleHTTPRequestHandler):
    server_version = f"folderhost/{__version__}"
    # Index files are looked up by _find_index instead
    index_pages = ()

    def __init__(self, request, client_address, server):
        self.config: Configuration = server.config
        self._resolved: Optional[Path] = None
        super().__init__(request, client_address, server,
                         directory=str(self.config.hosted_directory.path))

    # Path translation goes through resolve_path, which has already run in
    # send_head by the time the base class asks for it.
    def translate_path(self, path: str) -> str:
        if self._resolved is None:
            return str(resolve_path(self.config, path))
        return str(self._resolved)

    def send_head(self):
        try:
            resolved = resolve_path(self.config, self.path)
        except PathError as e:
            self.send_path_error(e)
            return None

        relative = url_path(self.path)
        if resolved.is_dir() and (not relative or relative.endswith("/")):
            resolved = self._find_index(resolved)

        # The handler instance is reused for keep-alive requests
        self._resolved = resolved
        try:
            return super().send_head()
        finally:
            self._resolved = None

    def _find_index(self, directory: Path) -> Path:
        # Index files are subject to the same checks as any other request
        base = self.path.split("?", 1)[0].split("#", 1)[0]
        if not base.endswith("/"):
            base += "/"
        for name in INDEX_FILES:
            try:
                candidate = resolve_path(self.config, base + name)
            except PathError:
                continue
            if candidate.is_file():
                return candidate
        return directory

    def guess_type(self, path):
        ctype = super().guess_type(path)
        if ctype == "application/octet-stream" and classify(Path(path)) is ContentClassification.TEXT:
            return "text/plain; charset=utf-8"
        return ctype

    def list_directory(self, path):
        try:
            names = sorted(os.listdir(path), key=str.lower)
        except OSError:
            self.send_error(HTTPStatus.NOT_FOUND, "No permission to list directory")
            return None

        relative = url_path(self.path)
        staging = self.config.temp_directory
        items = []
        if relative.strip("/"):
            items.append('    <li><a href="../">../</a></li>')
        for name in names:
            full = Path(path) / name
            if staging is not None and is_within(full, staging.path):
                continue
            shown = name + "/" if full.is_dir() else name
            items.append('    <li><a href="%s">%s</a></li>' % (
                quote(shown, errors="surrogatepass"),
                html.escape(shown, quote=False),
            ))

        page = render(DIRECTORY_LISTING_HTML, [html.escape("/" + relative, quote=False), "\n".join(items)])
        encoded = page.encode("utf-8", "surrogateescape")
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        return io.BytesIO(encoded)

    def do_PUT(self):
        """Stage the request body, then move it into the hosted directory"""
        if not self.config.allow_write:
            self.send_write_disabled()
            return

        raw_length = self.headers.get("Content-Length")
        if raw_length is None:
            self.send_error(HTTPStatus.LENGTH_REQUIRED, "Content-Length required")
            return
        try:
            length = int(raw_length)
            if length < 0:
                raise ValueError(raw_length)
        except ValueError:
            self.send_error(HTTPStatus.BAD_REQUEST, "Invalid Content-Length")
            return

        try:
            target = resolve_write_target(self.config, self.path)
        except PathError as e:
            self.send_path_error(e)
            return

        destination = self.config.hosted_directory.path.joinpath(*target.parts)
        if not target.parts or destination.is_dir():
            self.send_error(HTTPStatus.CONFLICT, "Cannot overwrite a directory")
            return
        existed = destination.exists()

        staged = None
        try:
            staged = stage_write(self.config, target, self.rfile, length)
            commit_write(self.config, target, staged)
        except IncompleteWrite:
            self.send_error(HTTPStatus.BAD_REQUEST, "Request body was incomplete")
            return
        except (NotADirectoryError, FileExistsError, IsADirectoryError):
            if staged is not None:
                discard_write(self.config, staged)
            self.send_error(HTTPStatus.CONFLICT, "A parent of the target is not a directory")
            return
        except OSError as e:
            if staged is not None:
                discard_write(self.config, staged)
            self.log_error("Write failed: %s", e.strerror or type(e).__name__)
            self.send_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Could not write the file")
            return

        self.send_response(HTTPStatus.NO_CONTENT if existed else HTTPStatus.CREATED)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def do_DELETE(self):
        """Remove a file or a whole directory tree"""
        if not self.config.allow_write:
            self.send_write_disabled()
            return

        try:
            resolved = resolve_path(self.config, self.path)
        except PathError as e:
            self.send_path_error(e)
            return

        root = self.config.hosted_directory.path
        if resolved == root:
            self.send_error(HTTPStatus.FORBIDDEN, "Refusing to delete the hosted directory")
            return

        target = self._delete_target(resolved)
        if not is_within(target, root):
            self.send_error(HTTPStatus.FORBIDDEN, "Access to the requested path is denied")
            return
        if contains_staging(self.config, target):
            self.send_error(HTTPStatus.NOT_FOUND, "The requested file was not found")
            return

        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as e:
            self.log_error("Delete failed: %s", e.strerror or type(e).__name__)
            self.send_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Could not delete the file")
            return

        self.send_response(HTTPStatus.NO_CONTENT)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def _delete_target(self, resolved: Path) -> Path:
        # Delete a symlink itself rather than whatever it points to: keep the
        # last component as requested and canonicalize only its parent.
        parts = [p for p in url_path(self.path).split("/") if p not in ("", ".")]
        if parts[-1] == "..":
            return resolved
        parent = self.config.hosted_directory.path.joinpath(*parts[:-1]).resolve()
        return parent / parts[-1]

    def send_write_disabled(self):
        self.send_error(HTTPStatus.METHOD_NOT_ALLOWED, "Write operations are not allowed",
                        headers={"Allow": "GET, HEAD"})

    def send_path_error(self, error: PathError):
        """Translate a PathError into an error page, without echoing local paths"""
        if isinstance(error, NotFound):
            self.send_error(HTTPStatus.NOT_FOUND, "The requested file was not found")
        else:
            self.send_error(HTTPStatus.FORBIDDEN, "Access to the requested path is denied")

    def send_error(self, code, message=None, explain=None, headers=None):
        """Send an error page rendered from the embedded template"""
        try:
            short, long = self.responses[code]
        except KeyError:
            short, long = "???", "???"
        if message is None:
            message = short
        if explain is None:
            explain = long

        self.log_error("code %d, message %s", code, message)
        self.send_response(code, message)
        self.send_header("Connection", "close")
        for name, value in (headers or {}).items():
            self.send_header(name, value)

        body = None
        if code >= 200 and code not in (HTTPStatus.NO_CONTENT, HTTPStatus.RESET_CONTENT,
                                        HTTPStatus.NOT_MODIFIED):
            body = render(ERROR_HTML, [
                html.escape(f"{int(code)} {short}", quote=False),
                html.escape(uppercase_first(message), quote=False),
            ]).encode("utf-8", "replace")
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(body)))
        self.end_headers()

        if self.command != "HEAD" and body:
            self.wfile.write(body)

    # Avoid verbose logging of full local paths; only log method, path, code
    def log_message(self, format: str, *args) -> None:
        if self.server.quiet:
            return
        message = (format % args) if args else format
        log(f"{self.address_string()} - {message}")

    def log_error(self, format: str, *args) -> None:
        message = (format % args) if args else format
        log(f"{self.address_string()} - {message}", "ERROR")


def serve(config: Configuration, host: str = "127.0.0.1", quiet: bool = False) -> None:
    """Bind the listener and serve until interrupted"""
    port = allocate_port(config, host)
    httpd = FolderHostServer((host, port), config, quiet=quiet)

    print(f'Hosting "{config.hosted_directory.display}" on http://{host}:{port}')
    if config.follow_symlinks:
        print("Following symlinks")
    if config.temp_directory is not None:
        print(f'Writes allowed, staged in "{config.temp_directory.display}"')
    print("Press Ctrl+C to stop the server")

    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down server...")
    finally:
        httpd.server_close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="folderhost",
        description="Host a directory over HTTP, fast and simply",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  FOLDERHOST_ROOT       Directory to host when DIR is omitted
  FOLDERHOST_TEMP_DIR   Temporary directory when --temp-dir is omitted

Examples:
  %(prog)s                       # Host the current directory on the first free port from 8000
  %(prog)s site --port 9000      # Host ./site on port 9000
  %(prog)s -w                    # Accept PUT and DELETE requests
        """
    )

    parser.add_argument(
        'directory', nargs='?', metavar='DIR',
        help='Directory to host (default: current working directory)'
    )
    parser.add_argument(
        '--port', '-p',
        help='Port to use (default: first free port from 8000 up)'
    )
    parser.add_argument(
        '--host',
        default='127.0.0.1',
        help='Host to bind to (default: 127.0.0.1)'
    )
    parser.add_argument(
        '--temp-dir', dest='temp_dir', metavar='TEMP',
        help='Temporary directory for staged writes (default: $TEMP)'
    )
    parser.add_argument(
        '--follow-symlinks', '-s',
        action='store_true',
        help='Follow symlinks (default: false)'
    )
    parser.add_argument(
        '--allow-write', '-w',
        action='store_true',
        help='Allow write operations (default: false)'
    )
    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Reduce logging output'
    )
    return parser


def main(argv=None) -> None:
    """Main server function"""
    args = build_parser().parse_args(argv)

    try:
        config = get_config(args)
        serve(config, host=args.host, quiet=args.quiet)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Error starting server: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

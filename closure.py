"""
Closure Compiler REST API client.

Provides a ClosureCompiler builder that accumulates JavaScript source and
compiler options, posts them to the Closure Compiler service and delivers the
compiled code to a callback, a file or stdout. The round trip runs in a
background thread; terminal calls return a Future that resolves exactly once.
Request failures are reported as Err values (see result.py), never raised to
the caller.

Use one ClosureCompiler per request. Terminal calls snapshot the builder, so
later mutation does not leak into an in-flight request, but the builder is not
reset and is not meant to be shared between overlapping requests.
"""

from __future__ import annotations

import os
import re
import sys
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import requests

from result import Ok, Err, ErrorKind, Result

OptionValue = Union[str, Tuple[str, ...]]

# Request parameters documented by the Closure Compiler service API.
SUPPORTED_OPTIONS = frozenset({
    "compilation_level",
    "debug",
    "exclude_default_externs",
    "externs_url",
    "formatting",
    "js_code",
    "js_externs",
    "language",
    "output_info",
    "use_closure_library",
    "use_types_for_optimization",
    "warning_level",
})

OUTPUT_FORMAT = "json"


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _normalize(value: Any) -> OptionValue:
    """Coerce an option value to its form-encoded shape (str or tuple of str)."""
    if isinstance(value, (list, tuple)):
        return tuple(_scalar(v) for v in value)
    return _scalar(value)


@dataclass(frozen=True)
class CompileRequest:
    """Immutable snapshot of everything a single compile request needs."""
    source_code: str = ""
    options: Mapping[str, OptionValue] = field(default_factory=lambda: MappingProxyType({}))
    header: str = ""

    def payload(self) -> Dict[str, Union[str, List[str]]]:
        """
        Form fields for the POST body.

        List values are sent as repeated keys. The source goes out as js_code
        and output_format is always json.
        """
        fields: Dict[str, Union[str, List[str]]] = {
            name: list(value) if isinstance(value, tuple) else value
            for name, value in self.options.items()
        }
        fields["js_code"] = self.source_code
        fields["output_format"] = OUTPUT_FORMAT
        return fields


@dataclass(frozen=True)
class Delivery:
    """Where a compile result goes. Both targets, either, or neither may be set."""
    callback: Optional[Callable[[Any], Any]] = None
    destination_file: Optional[str] = None
    pass_raw_response: bool = False


@dataclass(frozen=True)
class CompileStatistics:
    """Size statistics reported by the service when output_info asks for them."""
    original_size: int
    compressed_size: int
    compressed_gzip_size: int

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CompileStatistics":
        return cls(
            original_size=d.get("originalSize", 0),
            compressed_size=d.get("compressedSize", 0),
            compressed_gzip_size=d.get("compressedGzipSize", 0),
        )

    @staticmethod
    def kb(size: float) -> float:
        return round(size / 1024, 2)

    @property
    def reduction(self) -> float:
        """Percentage of the original size removed by compilation."""
        if not self.original_size:
            return 0.0
        return 100 * (1 - self.compressed_size / self.original_size)

    def lines(self) -> List[str]:
        return [
            f"      Original {self.kb(self.original_size)} KB",
            f"    Compressed {self.kb(self.compressed_size)} KB",
            f"     + GZipped {self.kb(self.compressed_gzip_size)} KB",
            f"       Reduced {self.reduction:.1f}%",
        ]

    def to_dict(self) -> Dict[str, float]:
        return {
            "original_kb": self.kb(self.original_size),
            "compressed_kb": self.kb(self.compressed_size),
            "compressed_gzip_kb": self.kb(self.compressed_gzip_size),
            "reduction": round(self.reduction, 2),
        }


class ClosureCompiler:
    """
    Fluent builder for one Closure Compiler request.

    Mutators return self for chaining. The terminal calls (compile,
    compile_delivering_raw_response, write_output_to_file, submit) send the
    request and return a Future resolving to Ok(response) when the compiled
    code was delivered, or Err otherwise.
    """

    _BASE_URL = "https://closure-compiler.appspot.com/compile"
    _HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        on_error: Optional[Callable[[Err], None]] = None,
    ):
        """
        Args:
            url: Compile endpoint (default: the public Closure Compiler service)
            timeout: Seconds passed to requests; None waits indefinitely
            on_error: Receives every Err instead of it being printed to stderr
        """
        self.url = url or self._BASE_URL
        self.timeout = timeout
        self.on_error = on_error
        self.source_code = ""
        self.options: Dict[str, OptionValue] = {"output_info": ("compiled_code",)}
        self.header = ""

    def set_option(self, name: str, value: Any) -> ClosureCompiler:
        """Set a request parameter. Unknown names are sent anyway, with a warning."""
        if name not in SUPPORTED_OPTIONS:
            print(f"Warning: Parameter unsupported, may cause error: {name}", file=sys.stderr)
        if name == "js_code":
            self.source_code = _scalar(value)
        else:
            self.options[name] = _normalize(value)
        return self

    def set_options(self, options: Mapping[str, Any]) -> ClosureCompiler:
        for name, value in options.items():
            self.set_option(name, value)
        return self

    def set_header(self, header: str) -> ClosureCompiler:
        """Set text prepended to file output. It is never sent to the compiler."""
        self.header = header
        return self

    def append_code(self, code: str) -> ClosureCompiler:
        self.source_code += code
        return self

    def append_file(self, path: Union[str, os.PathLike]) -> ClosureCompiler:
        """
        Append a file's contents. Raises OSError if it cannot be read.

        Bytes that are not valid UTF-8 are replaced with U+FFFD.
        """
        with open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
            return self.append_code(f.read())

    def append_files(self, *paths: Union[str, os.PathLike]) -> ClosureCompiler:
        for path in paths:
            self.append_file(path)
        return self

    def replace_code(
        self,
        pattern: Union[str, re.Pattern[str]],
        replacement: Union[str, Callable[[Any], str]],
        count: int = 1,
    ) -> ClosureCompiler:
        """
        Substitute text in all code added so far.

        Args:
            pattern: Literal string or compiled regex
            replacement: Replacement text (re.sub template or callable for regexes)
            count: Matches to replace, first match by default; 0 replaces all
        """
        if isinstance(pattern, str):
            self.source_code = self.source_code.replace(pattern, replacement, count or -1)
        else:
            self.source_code = pattern.sub(replacement, self.source_code, count=count)
        return self

    def build(self) -> CompileRequest:
        """Snapshot the current state as an immutable request."""
        return CompileRequest(
            source_code=self.source_code,
            options=MappingProxyType(dict(self.options)),
            header=self.header,
        )

    # -------------------------------------------------------------------------
    # Terminal calls
    # -------------------------------------------------------------------------

    def compile(self, callback: Callable[[str], Any]) -> "Future[Result[Dict[str, Any]]]":
        """Compile and pass the compiled code to callback."""
        return self.submit(callback=callback)

    def compile_delivering_raw_response(
        self, callback: Callable[[Dict[str, Any]], Any]
    ) -> "Future[Result[Dict[str, Any]]]":
        """Compile and pass the whole parsed JSON response to callback."""
        return self.submit(callback=callback, pass_raw_response=True)

    def write_output_to_file(self, path: Union[str, os.PathLike]) -> "Future[Result[Dict[str, Any]]]":
        """Compile and write header + compiled code to path, overwriting it."""
        return self.submit(destination_file=path)

    def submit(
        self,
        callback: Optional[Callable[[Any], Any]] = None,
        destination_file: Optional[Union[str, os.PathLike]] = None,
        pass_raw_response: bool = False,
    ) -> "Future[Result[Dict[str, Any]]]":
        """
        Send the request in a background thread.

        With neither callback nor destination_file the compiled code is
        printed to stdout. The returned Future cannot be cancelled. If the
        callback raises, the exception is set on the Future.
        """
        request = self.build()
        delivery = Delivery(
            callback=callback,
            destination_file=os.fspath(destination_file) if destination_file is not None else None,
            pass_raw_response=pass_raw_response,
        )
        future: Future = Future()
        future.set_running_or_notify_cancel()
        threading.Thread(
            target=self._run,
            args=(request, delivery, future),
            name="closure-compile",
        ).start()
        return future

    def _run(self, request: CompileRequest, delivery: Delivery, future: Future) -> None:
        try:
            result = self.execute(request, delivery)
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)

    def execute(self, request: CompileRequest, delivery: Delivery) -> Result[Dict[str, Any]]:
        """Run one round trip synchronously: post, report, deliver."""
        result = self._post(request)
        if result.is_ok():
            self._show_output_info(result.value)
            result = self._deliver(request, delivery, result.value)
        if result.is_err():
            self._report(result)
        return result

    # -------------------------------------------------------------------------
    # Round trip
    # -------------------------------------------------------------------------

    def _post(self, request: CompileRequest) -> Result[Dict[str, Any]]:
        """POST the form to the compile endpoint and return the JSON response or an Err."""
        try:
            resp = requests.post(
                self.url,
                data=request.payload(),
                headers=self._HEADERS,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            return Err(ErrorKind.TRANSPORT, f"Request to {self.url} failed: {e}")

        if resp.status_code != requests.codes.ok:
            return Err(
                ErrorKind.SERVICE,
                f"HTTP {resp.status_code}: {resp.reason}",
                status_code=resp.status_code,
                headers=dict(resp.headers),
                body=resp.text,
            )

        try:
            data = resp.json()
        except ValueError as e:
            return Err(ErrorKind.PROTOCOL, f"Invalid JSON in response: {e}")
        if not isinstance(data, dict):
            return Err(ErrorKind.PROTOCOL, f"Expected a JSON object, got {type(data).__name__}")
        stats = data.get("statistics")
        if stats is not None and not isinstance(stats, dict):
            return Err(ErrorKind.PROTOCOL, f"Expected statistics to be an object, got {type(stats).__name__}")
        return Ok(data)

    def _show_output_info(self, response: Dict[str, Any]) -> None:
        """Print compiler messages and statistics, as selected by output_info."""
        if "warnings" in response:
            print("Warnings:", response["warnings"])
        if "errors" in response:
            print("Errors:", response["errors"], file=sys.stderr)
        if response.get("statistics") is not None:
            print()
            for line in CompileStatistics.from_dict(response["statistics"]).lines():
                print(line)
            print()

    def _deliver(
        self, request: CompileRequest, delivery: Delivery, response: Dict[str, Any]
    ) -> Result[Dict[str, Any]]:
        code = response.get("compiledCode")
        if not code:
            return Err(ErrorKind.NO_OUTPUT, "No compiled code to output")

        if delivery.destination_file is not None:
            written = self._write_output(delivery.destination_file, request.header + code)
            if written.is_err():
                return written

        if delivery.callback is not None:
            delivery.callback(response if delivery.pass_raw_response else code)

        if delivery.destination_file is None and delivery.callback is None:
            print("Code:", code)

        return Ok(response)

    def _write_output(self, destination_file: str, text: str) -> Result[str]:
        path = os.path.realpath(destination_file)
        try:
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(text)
        except OSError as e:
            return Err(ErrorKind.IO, f"Saving code failed to {path}: {e}")
        print(f"Compiled code saved to {path}")
        return Ok(path)

    def _report(self, err: Err) -> None:
        if self.on_error is not None:
            self.on_error(err)
            return
        print(err, file=sys.stderr)
        if err.kind is ErrorKind.SERVICE:
            print(f"Status {err.status_code}", file=sys.stderr)
            print(f"Headers {err.headers}", file=sys.stderr)
            print(f"Body {err.body}", file=sys.stderr)
